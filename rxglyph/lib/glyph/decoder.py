"""
Glyph v2 decoder.

Recovers commit and reveal envelopes from untrusted bytes. Decoding is
two-phase: a cheap scan for the 3-byte magic, then strict structured
reads anchored at the first match. The magic can occur by accident
inside unrelated data (a hash, a key, a push of text); such a false
positive fails the version check or runs out of bytes during the
structured reads, and is reported the same way as no magic at all.

Nothing in here raises on malformed input. Every decode function
returns an envelope or None, and None means only "not a recognized
Glyph envelope".
"""

import json
from dataclasses import dataclass
from typing import (
    Any, ClassVar, Dict, NamedTuple, Optional, Sequence, Tuple, Union,
)

import cbor2

from rxglyph.lib import util
from rxglyph.lib.script import OpCodes, parse_script_pushes
from rxglyph.lib.glyph.constants import (
    COMMIT_HASH_SIZE, CONTENT_ROOT_SIZE, CONTROLLER_SIZE, DEFAULT_VERSION,
    GLYPH_MAGIC, HEADER_SIZE, KNOWN_VERSIONS, MAGIC_SIZE, EnvelopeFlags,
    GlyphLimits,
)
from rxglyph.lib.glyph.errors import FormatError, StructuralDecodeError

logger = util.class_logger(__name__, 'GlyphDecoder')


# ------------------------------------------------------------------
# Decode results
# ------------------------------------------------------------------

@dataclass(frozen=True)
class CommitEnvelope:
    version: int
    flags: int
    commit_hash: bytes
    content_root: Optional[bytes] = None
    controller: Optional[bytes] = None

    type: ClassVar[str] = 'commit'
    is_reveal: ClassVar[bool] = False

    @property
    def has_profile_hint(self) -> bool:
        return bool(self.flags & EnvelopeFlags.HAS_PROFILE_HINT)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type,
            'is_reveal': False,
            'version': self.version,
            'flags': self.flags,
            'commit_hash': self.commit_hash.hex(),
            'content_root': self.content_root.hex() if self.content_root else None,
            'controller': self.controller.hex() if self.controller else None,
        }


@dataclass(frozen=True)
class RevealEnvelope:
    version: int
    flags: int
    metadata: Optional[Dict[str, Any]] = None
    # Body bytes kept when they did not parse as metadata
    raw_metadata: Optional[bytes] = None
    files: Tuple[bytes, ...] = ()
    encoding: Optional[str] = None   # 'json' or 'cbor'

    type: ClassVar[str] = 'reveal'
    is_reveal: ClassVar[bool] = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type,
            'is_reveal': True,
            'version': self.version,
            'flags': self.flags,
            'metadata': self.metadata,
            'raw_metadata': self.raw_metadata.hex() if self.raw_metadata is not None else None,
            'files': [file.hex() for file in self.files],
            'encoding': self.encoding,
        }


Envelope = Union[CommitEnvelope, RevealEnvelope]


@dataclass(frozen=True)
class GlyphTxMatch:
    '''Where in a transaction an envelope was found.'''
    type: str
    envelope: Envelope
    output_index: Optional[int] = None
    input_index: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type,
            'output_index': self.output_index,
            'input_index': self.input_index,
            'envelope': self.envelope.to_dict(),
        }


class GlyphId(NamedTuple):
    txid: str
    vout: int


# ------------------------------------------------------------------
# Structured reads
# ------------------------------------------------------------------

class EnvelopeReader:
    '''Bounds-checked reader over a byte buffer.

    Every read checks the requested length against what remains before
    slicing; running short raises StructuralDecodeError.
    '''

    def __init__(self, data, offset: int = 0):
        self.view = memoryview(data)
        self.length = len(self.view)
        self.pos = offset

    def remaining(self) -> int:
        return max(0, self.length - self.pos)

    def read(self, n: int) -> bytes:
        if n > self.remaining():
            raise StructuralDecodeError(
                f'need {n} bytes at offset {self.pos}, have {self.remaining()}')
        start = self.pos
        self.pos += n
        return bytes(self.view[start:self.pos])

    def read_uint8(self) -> int:
        return self.read(1)[0]

    def read_all(self, limit: int) -> bytes:
        n = self.remaining()
        if n > limit:
            raise StructuralDecodeError(f'{n:,d} remaining bytes exceed {limit:,d}')
        return self.read(n)


def contains_glyph_magic(data: bytes) -> bool:
    """Check if data contains Glyph magic bytes."""
    return GLYPH_MAGIC in bytes(data)


def find_glyph_magic(data: bytes) -> int:
    """Find the position of Glyph magic bytes in data. Returns -1 if not found."""
    return bytes(data).find(GLYPH_MAGIC)


def decode_envelope(script: bytes) -> Optional[Envelope]:
    '''Decode the envelope anchored at the first magic in *script*.

    Returns None when there is no magic, the version byte is unknown,
    or the bytes run out before the envelope is complete.
    '''
    script = bytes(script)
    offset = find_glyph_magic(script)
    if offset < 0:
        return None

    reader = EnvelopeReader(script, offset + MAGIC_SIZE)
    try:
        version = reader.read_uint8()
        if version not in KNOWN_VERSIONS:
            return None
        flags = reader.read_uint8()
        if flags & EnvelopeFlags.IS_REVEAL:
            return decode_reveal_envelope(reader, version, flags)
        return decode_commit_envelope(reader, version, flags)
    except StructuralDecodeError as e:
        logger.debug(f'magic at offset {offset} is not an envelope: {e}')
        return None


def decode_commit_envelope(reader: EnvelopeReader, version: int,
                           flags: int) -> CommitEnvelope:
    '''Read the commit fields that follow version and flags.

    Field order mirrors encode_commit_envelope. Raises
    StructuralDecodeError if the buffer is short.
    '''
    commit_hash = reader.read(COMMIT_HASH_SIZE)
    content_root = None
    controller = None
    if flags & EnvelopeFlags.HAS_CONTENT_ROOT:
        content_root = reader.read(CONTENT_ROOT_SIZE)
    if flags & EnvelopeFlags.HAS_CONTROLLER:
        controller = reader.read(CONTROLLER_SIZE)
    return CommitEnvelope(version, flags, commit_hash, content_root, controller)


def decode_reveal_envelope(reader: EnvelopeReader, version: int,
                           flags: int) -> RevealEnvelope:
    '''Treat everything after the header as the metadata body.

    A body that does not parse is kept in ``raw_metadata``; the
    envelope is still recognized. Chunk boundaries (metadata vs. files)
    cannot be recovered from a flat buffer, use decode_reveal_chunks
    when the push segmentation is known.
    '''
    body = reader.read_all(GlyphLimits.MAX_REVEAL_ENVELOPE_B_SIZE)
    if not body:
        return RevealEnvelope(version, flags)
    metadata = _parse_json_metadata(body)
    if metadata is None:
        return RevealEnvelope(version, flags, raw_metadata=body)
    return RevealEnvelope(version, flags, metadata=metadata, encoding='json')


def _reject_constant(name):
    raise ValueError(f'{name} is not valid JSON')


def _parse_json_metadata(body: bytes) -> Optional[Dict[str, Any]]:
    # Invalid UTF-8 is replaced, not fatal, as a JavaScript TextDecoder does
    try:
        value = json.loads(body.decode('utf-8', 'replace'),
                           parse_constant=_reject_constant)
    except (ValueError, RecursionError):
        return None
    return value if isinstance(value, dict) else None


def decode_metadata(data: bytes) -> Dict[str, Any]:
    '''Decode canonical metadata bytes; the inverse of encode_metadata.

    Unlike the envelope decoders this is strict: it raises FormatError
    if *data* is not a UTF-8 JSON object.
    '''
    try:
        value = json.loads(bytes(data).decode('utf-8'),
                           parse_constant=_reject_constant)
    except (ValueError, RecursionError) as e:
        raise FormatError(f'invalid metadata JSON: {e}') from None
    if not isinstance(value, dict):
        raise FormatError('metadata JSON must be an object')
    return value


def decode_cbor_metadata(data: bytes) -> Optional[Dict[str, Any]]:
    """Decode legacy (v1) CBOR metadata bytes into a dict.

    Returns None if data is invalid CBOR, too large, or not a map.
    """
    if not data or len(data) > GlyphLimits.MAX_METADATA_SIZE:
        return None
    try:
        result = cbor2.loads(data)
    except Exception:
        return None
    if not isinstance(result, dict):
        return None
    return result


def _parse_any_metadata(body: bytes) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
    metadata = _parse_json_metadata(body)
    if metadata is not None:
        return metadata, 'json'
    metadata = decode_cbor_metadata(body)
    if metadata is not None:
        return metadata, 'cbor'
    return None, None


def _version_of(metadata: Optional[Dict[str, Any]]) -> int:
    v = (metadata or {}).get('v')
    if isinstance(v, int) and v in KNOWN_VERSIONS:
        return v
    return DEFAULT_VERSION


def decode_reveal_chunks(chunks: Sequence[bytes]) -> Optional[RevealEnvelope]:
    '''Decode a reveal from its push chunks.

    Style A: header chunk (magic | version | flags with IS_REVEAL),
    metadata chunk, file chunks.
    Style B: bare magic chunk, metadata chunk, file chunks.

    Metadata is tried as JSON first, then as legacy CBOR.
    '''
    chunks = [bytes(chunk) for chunk in chunks]
    if not chunks:
        return None
    if sum(len(chunk) for chunk in chunks) > GlyphLimits.MAX_REVEAL_ENVELOPE_B_SIZE:
        return None

    head = chunks[0]
    if head == GLYPH_MAGIC:
        if len(chunks) < 2:
            return None
        metadata, encoding = _parse_any_metadata(chunks[1])
        if metadata is None:
            return None
        return RevealEnvelope(_version_of(metadata), EnvelopeFlags.IS_REVEAL,
                              metadata=metadata, files=tuple(chunks[2:]),
                              encoding=encoding)

    if len(head) != HEADER_SIZE or not head.startswith(GLYPH_MAGIC):
        return None
    version, flags = head[MAGIC_SIZE], head[MAGIC_SIZE + 1]
    if version not in KNOWN_VERSIONS or not flags & EnvelopeFlags.IS_REVEAL:
        return None
    if len(chunks) < 2:
        return RevealEnvelope(version, flags)
    body = chunks[1]
    metadata, encoding = _parse_any_metadata(body)
    raw = body if metadata is None and body else None
    return RevealEnvelope(version, flags, metadata=metadata, raw_metadata=raw,
                          files=tuple(chunks[2:]), encoding=encoding)


def decode_script(script: bytes) -> Optional[Envelope]:
    """Decode an envelope from a script using its push segmentation.

    Handles both on-chain formats:

      Style A: a push starting with the magic. A 5-byte header push
      with IS_REVEAL set is a reveal whose metadata and files are the
      following pushes; any other magic-prefixed push carries its
      envelope inline (commit, or a reveal with the body appended).

      Style B: the magic as its own push. The next push is either the
      metadata itself (reveal) or ``version | flags | ...`` (structured
      envelope without the magic prefix).

    The first candidate that decodes wins.
    """
    script = bytes(script)
    if GLYPH_MAGIC not in script:
        return None
    pushes = parse_script_pushes(script)

    for i, push in enumerate(pushes):
        if push == GLYPH_MAGIC:
            if i + 1 >= len(pushes):
                continue
            envelope = decode_reveal_chunks(pushes[i:])
            payload = pushes[i + 1]
            if envelope is None and payload and payload[0] in KNOWN_VERSIONS:
                envelope = decode_envelope(GLYPH_MAGIC + payload)
            if envelope is not None:
                return envelope
            continue

        if len(push) >= HEADER_SIZE and push.startswith(GLYPH_MAGIC):
            if (len(push) == HEADER_SIZE
                    and push[MAGIC_SIZE + 1] & EnvelopeFlags.IS_REVEAL):
                envelope = decode_reveal_chunks(pushes[i:])
            else:
                envelope = decode_envelope(push)
            if envelope is not None:
                return envelope

    return None


def find_envelope(script: bytes) -> Optional[Envelope]:
    '''Push-aware decode_script, falling back to the flat decode_envelope.'''
    return decode_script(script) or decode_envelope(script)


def is_glyph_op_return(script: bytes) -> bool:
    """Check if an output script is an OP_RETURN containing Glyph magic.

    Handles both OP_RETURN and OP_FALSE OP_RETURN patterns.
    """
    if not script:
        return False
    script = bytes(script)
    if script[0] == OpCodes.OP_RETURN:
        return GLYPH_MAGIC in script
    if (len(script) >= 2 and script[0] == OpCodes.OP_FALSE
            and script[1] == OpCodes.OP_RETURN):
        return GLYPH_MAGIC in script
    return False


# ------------------------------------------------------------------
# Transactions
# ------------------------------------------------------------------

def _input_script(tx_in) -> bytes:
    return getattr(tx_in, 'script', None) or b''


def is_glyph_transaction(tx) -> bool:
    '''True if any output script or input script contains the magic.'''
    for tx_out in tx.outputs:
        if contains_glyph_magic(tx_out.pk_script):
            return True
    for tx_in in tx.inputs:
        if contains_glyph_magic(_input_script(tx_in)):
            return True
    return False


def parse_glyph_transaction(tx) -> Optional[GlyphTxMatch]:
    '''Find the first envelope in *tx*.

    Outputs are scanned first, in index order, and any envelope counts.
    Otherwise inputs are scanned in index order for a reveal; commits
    are never expected in an unlocking script. First match wins.
    '''
    for idx, tx_out in enumerate(tx.outputs):
        envelope = find_envelope(tx_out.pk_script)
        if envelope is not None:
            return GlyphTxMatch(envelope.type, envelope, output_index=idx)

    for idx, tx_in in enumerate(tx.inputs):
        script = _input_script(tx_in)
        if not script:
            continue
        envelope = find_envelope(script)
        if envelope is not None and envelope.is_reveal:
            return GlyphTxMatch('reveal', envelope, input_index=idx)

    return None


def get_glyph_id(txid: str, vout: int) -> str:
    """Format a Glyph ID from txid and vout."""
    return f'{txid}:{vout}'


def parse_glyph_id(glyph_id: str) -> GlyphId:
    """Parse a Glyph ID into txid and vout."""
    txid, sep, vout = glyph_id.partition(':')
    if not sep:
        raise ValueError(f'invalid glyph_id {glyph_id!r}: expected txid:vout')
    return GlyphId(txid, int(vout))
