"""
FastAPI REST API for rxglyph

Exposes the Glyph encode / decode / validate core over HTTP. Every
endpoint is a pure transformation of its request body; the service
keeps no token state and does no indexing.

Run directly to serve with uvicorn, configured from the environment
(see rxglyph.server.env).
"""

from typing import Any, Dict, List, Literal, Optional
import sys
import time
from dataclasses import dataclass

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

import rxglyph
from rxglyph.lib import util
from rxglyph.lib.script import build_reveal_script
from rxglyph.lib.tx import Deserializer, TxDeserializeError, tx_hash_hex
from rxglyph.lib.glyph import (
    ALL_PROTOCOLS, PROTOCOL_EXCLUSIONS, PROTOCOL_REQUIREMENTS,
    PROTOCOLS_REQUIRE_BASE, FormatError, SizeLimitError, compute_commit_hash,
    find_envelope, encode_commit_envelope, encode_metadata,
    encode_reveal_envelope, encode_reveal_envelope_b, extract_token_info,
    get_glyph_id, get_protocol_name, get_token_type, get_token_type_id,
    is_glyph_transaction, parse_glyph_id, parse_glyph_transaction,
    validate_metadata, validate_protocols,
)
from rxglyph.server.env import Env, EnvError

logger = util.class_logger(__name__, 'RestAPI')


# =============================================================================
# REQUEST / RESPONSE MODELS
# =============================================================================

class HealthResponse(BaseModel):
    status: str
    uptime_seconds: float
    version: str


class ProtocolsRequest(BaseModel):
    protocols: Any = None


class MetadataRequest(BaseModel):
    metadata: Any = None


class CommitRequest(BaseModel):
    commit_hash: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    flags: int = 0
    content_root: Optional[str] = None
    controller: Optional[str] = None


class RevealRequest(BaseModel):
    metadata: Dict[str, Any]
    files: List[str] = Field(default_factory=list)
    style: Literal['A', 'B'] = 'A'


class ScriptRequest(BaseModel):
    script: str


class TxRequest(BaseModel):
    raw_tx: str


def _hex_bytes(name: str, value: Optional[str]) -> Optional[bytes]:
    if value is None:
        return None
    try:
        return bytes.fromhex(value)
    except ValueError:
        raise FormatError(f'{name} is not valid hex') from None


# =============================================================================
# SECURITY
# =============================================================================

@dataclass
class _TokenBucket:
    tokens: float
    last_ts: float


class RateLimiter:
    '''Per-client token bucket.

    Buckets that have refilled to the burst size are dropped at most once
    per PRUNE_INTERVAL seconds; a new bucket starts full, so dropping one
    changes nothing for its client.
    '''

    PRUNE_INTERVAL = 60.0

    def __init__(self, limit_per_minute: int, burst: int):
        self.limit_per_minute = limit_per_minute
        self.burst = burst
        self.buckets: Dict[str, _TokenBucket] = {}
        self.last_prune: Optional[float] = None

    def _refill_per_sec(self) -> float:
        return float(self.limit_per_minute) / 60.0

    def prune(self, now: float) -> None:
        refill_per_sec = self._refill_per_sec()
        full = [client for client, bucket in self.buckets.items()
                if bucket.tokens + (now - bucket.last_ts) * refill_per_sec >= self.burst]
        for client in full:
            del self.buckets[client]
        self.last_prune = now

    def allow(self, client: str, now: Optional[float] = None) -> bool:
        if self.limit_per_minute <= 0:
            return True
        if now is None:
            now = time.time()
        if self.last_prune is None:
            self.last_prune = now
        elif now - self.last_prune >= self.PRUNE_INTERVAL:
            self.prune(now)
        bucket = self.buckets.get(client)
        if bucket is None:
            bucket = _TokenBucket(tokens=float(self.burst), last_ts=now)
            self.buckets[client] = bucket

        elapsed = max(0.0, now - bucket.last_ts)
        bucket.tokens = min(float(self.burst), bucket.tokens + elapsed * self._refill_per_sec())
        bucket.last_ts = now

        if bucket.tokens < 1.0:
            return False
        bucket.tokens -= 1.0
        return True


# =============================================================================
# APP FACTORY
# =============================================================================

def create_app(env: Optional[Env] = None) -> FastAPI:
    """Build the FastAPI app; configuration is read from the environment
    unless an Env is given."""
    if env is None:
        env = Env()

    app = FastAPI(
        title="rxglyph REST API",
        description="Encode, decode and validate Glyph v2 token envelopes",
        version=rxglyph.version_short,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.env = env
    app.state.rate_limiter = RateLimiter(env.rate_limit_per_min, env.rate_limit_burst)
    start_time = time.time()

    logger.info(f'REST API configuration: {env.summary()}')

    app.add_middleware(
        CORSMiddleware,
        allow_origins=env.allowed_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def _security_middleware(request: Request, call_next):
        if request.url.path.startswith('/health') or request.method == 'OPTIONS':
            return await call_next(request)

        if env.rest_api_key and request.headers.get('x-api-key') != env.rest_api_key:
            return JSONResponse(status_code=401, content={'detail': 'Unauthorized'})

        client_host = request.client.host if request.client else 'unknown'
        if not app.state.rate_limiter.allow(client_host):
            logger.warning(f'rate limit exceeded for {client_host}')
            return JSONResponse(status_code=429, content={'detail': 'Rate limit exceeded'})
        return await call_next(request)

    @app.exception_handler(FormatError)
    async def _format_error(request: Request, exc: FormatError):
        logger.warning(f'{request.url.path}: {exc}')
        return JSONResponse(status_code=400, content={'detail': str(exc)})

    @app.exception_handler(SizeLimitError)
    async def _size_limit_error(request: Request, exc: SizeLimitError):
        logger.warning(f'{request.url.path}: {exc}')
        return JSONResponse(status_code=413, content={
            'detail': str(exc), 'limit': exc.limit, 'size': exc.size,
        })

    # =========================================================================
    # HEALTH
    # =========================================================================

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check():
        return HealthResponse(
            status="healthy",
            uptime_seconds=round(time.time() - start_time, 2),
            version=rxglyph.version_short,
        )

    @app.get("/health/live", tags=["Health"])
    async def health_live():
        return {"status": "alive"}

    # =========================================================================
    # PROTOCOLS
    # =========================================================================

    @app.get("/glyph/protocols", tags=["Protocols"])
    async def get_protocols():
        """List protocol IDs with their combination rules."""
        return {
            "protocols": [
                {
                    "id": protocol,
                    "name": get_protocol_name(protocol),
                    "requires": list(PROTOCOL_REQUIREMENTS.get(protocol, ())),
                    "standalone": protocol not in PROTOCOLS_REQUIRE_BASE,
                }
                for protocol in ALL_PROTOCOLS
            ],
            "exclusions": [list(pair) for pair in PROTOCOL_EXCLUSIONS],
        }

    @app.post("/glyph/protocols/validate", tags=["Protocols"])
    async def post_validate_protocols(body: ProtocolsRequest):
        valid, error = validate_protocols(body.protocols)
        result = {"valid": valid, "error": error}
        if valid:
            result["token_type"] = get_token_type(body.protocols)
            result["token_type_id"] = get_token_type_id(body.protocols)
        return result

    # =========================================================================
    # METADATA
    # =========================================================================

    @app.post("/glyph/metadata/validate", tags=["Metadata"])
    async def post_validate_metadata(body: MetadataRequest):
        valid, errors = validate_metadata(body.metadata)
        return {"valid": valid, "errors": errors}

    @app.post("/glyph/metadata/encode", tags=["Metadata"])
    async def post_encode_metadata(body: MetadataRequest):
        """Canonical metadata bytes and their commit hash."""
        if not isinstance(body.metadata, dict):
            raise FormatError('metadata must be an object')
        data = encode_metadata(body.metadata)
        return {
            "metadata": body.metadata,
            "metadata_hex": data.hex(),
            "size": len(data),
            "commit_hash": compute_commit_hash(data).hex(),
        }

    # =========================================================================
    # ENVELOPES
    # =========================================================================

    @app.post("/glyph/commit", tags=["Envelopes"])
    async def post_commit(body: CommitRequest):
        """Build a commit envelope from a commit hash, or from metadata."""
        commit_hash = _hex_bytes('commit_hash', body.commit_hash)
        if commit_hash is None and body.metadata is not None:
            commit_hash = compute_commit_hash(body.metadata)
        envelope = encode_commit_envelope(
            commit_hash,
            flags=body.flags,
            content_root=_hex_bytes('content_root', body.content_root),
            controller=_hex_bytes('controller', body.controller),
        )
        return {
            "commit_hash": commit_hash.hex(),
            "flags": envelope[4],
            "envelope_hex": envelope.hex(),
        }

    @app.post("/glyph/reveal", tags=["Envelopes"])
    async def post_reveal(body: RevealRequest):
        """Build a reveal envelope; returns the chunks and an OP_RETURN script."""
        files = [_hex_bytes(f'files[{i}]', file) for i, file in enumerate(body.files)]
        if body.style == 'A':
            chunks = encode_reveal_envelope(body.metadata, files)
        else:
            chunks = encode_reveal_envelope_b(body.metadata, files)
        return {
            "style": body.style,
            "chunks": [chunk.hex() for chunk in chunks],
            "script_hex": build_reveal_script(chunks).hex(),
        }

    @app.post("/glyph/decode", tags=["Envelopes"])
    async def post_decode(body: ScriptRequest):
        """Decode a script (or bare envelope bytes); envelope is null if none."""
        data = _hex_bytes('script', body.script)
        envelope = find_envelope(data)
        result: Dict[str, Any] = {
            "envelope": envelope.to_dict() if envelope else None,
        }
        if envelope is not None and envelope.is_reveal and envelope.metadata:
            result["token_info"] = extract_token_info(envelope.metadata, envelope)
        return result

    @app.post("/glyph/tx", tags=["Envelopes"])
    async def post_tx(body: TxRequest):
        """Scan a raw transaction for its first Glyph envelope."""
        raw = _hex_bytes('raw_tx', body.raw_tx)
        try:
            tx, tx_hash = Deserializer(raw).read_tx_and_hash()
        except TxDeserializeError as e:
            raise HTTPException(status_code=400, detail=f'Invalid transaction: {e}')
        txid = tx_hash_hex(tx_hash)
        match = parse_glyph_transaction(tx)
        result: Dict[str, Any] = {
            "txid": txid,
            "is_glyph": is_glyph_transaction(tx),
            "match": match.to_dict() if match else None,
            "glyph_id": None,
        }
        if match is not None and match.output_index is not None:
            result["glyph_id"] = get_glyph_id(txid, match.output_index)
        return result

    @app.get("/glyph/id/{glyph_id}", tags=["Envelopes"])
    async def get_glyph_id_parts(glyph_id: str):
        try:
            txid, vout = parse_glyph_id(glyph_id)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"glyph_id": get_glyph_id(txid, vout), "txid": txid, "vout": vout}

    return app


# =============================================================================
# STARTUP
# =============================================================================

def main():
    '''Serve the REST API with uvicorn.'''
    import uvicorn

    try:
        env = Env()
    except EnvError as e:
        util.make_logger('rxglyph').error(f'configuration error: {e}')
        sys.exit(1)
    util.make_logger('rxglyph', level=env.log_level)
    uvicorn.run(create_app(env), host=env.host, port=env.port)


if __name__ == "__main__":
    main()
