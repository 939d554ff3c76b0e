"""
Glyph v2 token protocol: encode, decode and validate.

Single import surface for the glyph submodules:

  constants  protocol IDs, flags, size limits
  canonical  deterministic JSON serialization
  metadata   GlyphMetadata record and token-info extraction
  encoder    metadata bytes, commit hash, commit/reveal envelopes
  decoder    forgiving envelope recovery from untrusted bytes
  validator  protocol-combination and metadata-schema rules

Reference: https://github.com/Radiant-Core/Glyph-Token-Standards
"""

from rxglyph.lib.glyph.constants import (
    ALL_PROTOCOLS, COMMIT_HASH_SIZE, CONTENT_ROOT_SIZE, CONTROLLER_SIZE,
    DEFAULT_VERSION, GLYPH_MAGIC, GLYPH_MAGIC_HEX, HEADER_SIZE,
    KNOWN_VERSIONS, MAGIC_SIZE, PROTOCOL_NAMES, AuthorityType, ContainerType,
    DaaMode, DmintAlgorithm, EnvelopeFlags, GlyphDefaults, GlyphLimits,
    GlyphProtocol, GlyphTokenType, GlyphVersion, StorageType, UpdateOperation,
    get_protocol_name,
)
from rxglyph.lib.glyph.errors import (
    FormatError, GlyphError, SizeLimitError, StructuralDecodeError,
)
from rxglyph.lib.glyph.canonical import (
    canonical_bytes, canonical_json, canonicalize,
)
from rxglyph.lib.glyph.metadata import (
    SECTION_KEYS, SECTION_OWNERS, GlyphMetadata, extract_token_info,
)
from rxglyph.lib.glyph.encoder import (
    compute_commit_hash, create_reveal_envelope, encode_commit_envelope,
    encode_metadata, encode_reveal_envelope, encode_reveal_envelope_b,
)
from rxglyph.lib.glyph.decoder import (
    CommitEnvelope, Envelope, EnvelopeReader, GlyphId, GlyphTxMatch,
    RevealEnvelope, contains_glyph_magic, decode_cbor_metadata,
    decode_commit_envelope, decode_envelope, decode_metadata,
    decode_reveal_chunks, decode_reveal_envelope, decode_script,
    find_envelope, find_glyph_magic, get_glyph_id, is_glyph_op_return,
    is_glyph_transaction, parse_glyph_id, parse_glyph_transaction,
)
from rxglyph.lib.glyph.validator import (
    PROTOCOL_EXCLUSIONS, PROTOCOL_REQUIREMENTS, PROTOCOLS_REQUIRE_BASE,
    MetadataValidation, ProtocolValidation, get_token_type, get_token_type_id,
    is_container, is_dmint, is_fungible, is_mutable, is_nft, is_valid_glyph,
    validate_content, validate_content_file, validate_metadata,
    validate_protocols, validate_royalty,
)
