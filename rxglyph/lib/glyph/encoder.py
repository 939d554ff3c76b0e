"""
Glyph v2 encoder.

Builds canonical metadata bytes, the commit hash over them, and the
commit and reveal envelopes. Envelopes are returned as bytes (commit)
or as a list of push chunks (reveal); putting them into a script is the
caller's business (see rxglyph.lib.script.build_reveal_script).
"""

from typing import Callable, List, Optional, Sequence, Union

from rxglyph.lib.hash import sha256
from rxglyph.lib.glyph.canonical import canonical_bytes
from rxglyph.lib.glyph.constants import (
    COMMIT_HASH_SIZE, CONTENT_ROOT_SIZE, CONTROLLER_SIZE, DEFAULT_VERSION,
    GLYPH_MAGIC, EnvelopeFlags, GlyphLimits, GlyphVersion,
)
from rxglyph.lib.glyph.errors import FormatError, SizeLimitError
from rxglyph.lib.glyph.metadata import GlyphMetadata, MetadataLike

BytesLike = (bytes, bytearray, memoryview)


def encode_metadata(metadata: MetadataLike) -> bytes:
    '''Encode metadata to canonical JSON bytes.

    If the version field ``v`` is missing (or falsy) it is set to the
    default version ON THE CALLER'S OBJECT before encoding.
    '''
    if isinstance(metadata, GlyphMetadata):
        if not metadata.v:
            metadata.v = DEFAULT_VERSION
        return canonical_bytes(metadata.to_dict())
    if not isinstance(metadata, dict):
        raise FormatError(f'metadata must be a mapping, not {type(metadata).__name__}')
    if not metadata.get('v'):
        metadata['v'] = DEFAULT_VERSION
    return canonical_bytes(metadata)


def _metadata_bytes(metadata) -> bytes:
    if isinstance(metadata, BytesLike):
        return bytes(metadata)
    return encode_metadata(metadata)


def compute_commit_hash(metadata: Union[MetadataLike, bytes],
                        hash_func: Callable[[bytes], bytes] = sha256) -> bytes:
    '''Hash of the canonical metadata bytes.

    Raw bytes are hashed as given; anything else is first run through
    encode_metadata.
    '''
    return hash_func(_metadata_bytes(metadata))


def _check_field(name: str, value, size: int) -> bytes:
    if not isinstance(value, BytesLike) or len(value) != size:
        raise FormatError(f'Invalid {name}: expected {size} bytes')
    return bytes(value)


def encode_commit_envelope(commit_hash: bytes, flags: int = 0,
                           content_root: Optional[bytes] = None,
                           controller: Optional[bytes] = None) -> bytes:
    '''Encode a commit envelope.

    Layout: magic | version | flags | commit_hash(32)
            [| content_root(32)] [| controller(36)]

    The HAS_CONTENT_ROOT and HAS_CONTROLLER flag bits are set from the
    presence of the optional fields.
    '''
    if commit_hash is None:
        raise FormatError('Invalid commit hash: missing')
    commit_hash = _check_field('commit hash', commit_hash, COMMIT_HASH_SIZE)
    if not isinstance(flags, int) or not 0 <= flags <= 0xff:
        raise FormatError(f'Invalid flags: {flags!r}')

    if content_root is not None:
        content_root = _check_field('content root', content_root, CONTENT_ROOT_SIZE)
        flags |= EnvelopeFlags.HAS_CONTENT_ROOT
    if controller is not None:
        controller = _check_field('controller', controller, CONTROLLER_SIZE)
        flags |= EnvelopeFlags.HAS_CONTROLLER

    parts = [GLYPH_MAGIC, bytes([GlyphVersion.V2, flags]), commit_hash]
    if content_root is not None:
        parts.append(content_root)
    if controller is not None:
        parts.append(controller)
    return b''.join(parts)


def encode_reveal_envelope(metadata, files: Sequence[bytes] = ()) -> List[bytes]:
    '''Encode a style A reveal envelope.

    Returns the chunk list: header (magic | version | IS_REVEAL),
    metadata bytes, then one chunk per inline file.
    '''
    metadata_bytes = _metadata_bytes(metadata)
    if len(metadata_bytes) > GlyphLimits.MAX_METADATA_SIZE:
        raise SizeLimitError(
            f'Metadata exceeds maximum size of {GlyphLimits.MAX_METADATA_SIZE} bytes',
            limit=GlyphLimits.MAX_METADATA_SIZE, size=len(metadata_bytes))

    chunks = [GLYPH_MAGIC + bytes([GlyphVersion.V2, EnvelopeFlags.IS_REVEAL]),
              metadata_bytes]
    total = 0
    for file in files:
        if len(file) > GlyphLimits.MAX_INLINE_FILE_SIZE:
            raise SizeLimitError(
                f'File exceeds maximum inline size of '
                f'{GlyphLimits.MAX_INLINE_FILE_SIZE} bytes',
                limit=GlyphLimits.MAX_INLINE_FILE_SIZE, size=len(file))
        total += len(file)
        if total > GlyphLimits.MAX_TOTAL_INLINE_SIZE:
            raise SizeLimitError(
                f'Inline files exceed total size of '
                f'{GlyphLimits.MAX_TOTAL_INLINE_SIZE} bytes',
                limit=GlyphLimits.MAX_TOTAL_INLINE_SIZE, size=total)
        chunks.append(bytes(file))
    return chunks


def encode_reveal_envelope_b(metadata, files: Sequence[bytes] = ()) -> List[bytes]:
    '''Encode a style B reveal envelope: bare magic, metadata, files.

    No size limits are applied here; style B is meant for multi-push
    scripts whose bound is enforced by the script layer.
    '''
    chunks = [GLYPH_MAGIC, _metadata_bytes(metadata)]
    chunks.extend(bytes(file) for file in files)
    return chunks


def create_reveal_envelope(metadata) -> List[bytes]:
    return encode_reveal_envelope(metadata)
