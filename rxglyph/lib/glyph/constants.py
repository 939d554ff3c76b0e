"""
Glyph v2 protocol constants.

Reference: https://github.com/Radiant-Core/Glyph-Token-Standards
"""

# Glyph magic bytes
GLYPH_MAGIC = b'gly'
GLYPH_MAGIC_HEX = '676c79'


# Protocol versions
class GlyphVersion:
    V1 = 0x01
    V2 = 0x02


KNOWN_VERSIONS = frozenset((GlyphVersion.V1, GlyphVersion.V2))
DEFAULT_VERSION = GlyphVersion.V2


# Protocol IDs
class GlyphProtocol:
    GLYPH_FT = 1         # Fungible Token
    GLYPH_NFT = 2        # Non-Fungible Token
    GLYPH_DAT = 3        # Data Storage
    GLYPH_DMINT = 4      # Decentralized Minting
    GLYPH_MUT = 5        # Mutable State
    GLYPH_BURN = 6       # Explicit Burn
    GLYPH_CONTAINER = 7  # Container/Collection
    GLYPH_ENCRYPTED = 8  # Encrypted Content
    GLYPH_TIMELOCK = 9   # Timelocked Reveal
    GLYPH_AUTHORITY = 10 # Issuer Authority
    GLYPH_WAVE = 11      # WAVE Naming


ALL_PROTOCOLS = tuple(range(GlyphProtocol.GLYPH_FT, GlyphProtocol.GLYPH_WAVE + 1))


# Token types for indexing / API
class GlyphTokenType:
    UNKNOWN = 0
    FT = 1
    NFT = 2
    DAT = 3
    DMINT = 4
    WAVE = 5
    CONTAINER = 6
    AUTHORITY = 7


# Protocol names for logging/display
PROTOCOL_NAMES = {
    1: 'Fungible Token',
    2: 'Non-Fungible Token',
    3: 'Data Storage',
    4: 'Decentralized Minting',
    5: 'Mutable State',
    6: 'Burn',
    7: 'Container',
    8: 'Encrypted',
    9: 'Timelock',
    10: 'Authority',
    11: 'WAVE Name',
}


# Envelope flags
class EnvelopeFlags:
    HAS_CONTENT_ROOT = 1 << 0
    HAS_CONTROLLER = 1 << 1
    HAS_PROFILE_HINT = 1 << 2
    IS_REVEAL = 1 << 7


# Fixed envelope field sizes
MAGIC_SIZE = len(GLYPH_MAGIC)
HEADER_SIZE = MAGIC_SIZE + 2     # magic + version + flags
COMMIT_HASH_SIZE = 32
CONTENT_ROOT_SIZE = 32
CONTROLLER_SIZE = 36             # outpoint: txid + vout


class GlyphLimits:
    MAX_NAME_SIZE = 256
    MAX_DESC_SIZE = 4096
    MAX_PATH_SIZE = 512
    MAX_MIME_SIZE = 128
    MAX_METADATA_SIZE = 262144
    MAX_COMMIT_ENVELOPE_SIZE = 102400
    MAX_REVEAL_ENVELOPE_A_SIZE = 102400
    MAX_REVEAL_ENVELOPE_B_SIZE = 12582912
    MAX_UPDATE_ENVELOPE_SIZE = 65536
    MAX_INLINE_FILE_SIZE = 1048576
    MAX_TOTAL_INLINE_SIZE = 10485760
    MAX_PROTOCOLS = 16
    MAX_ROYALTY_BPS = 10000


# dMint Algorithm IDs
class DmintAlgorithm:
    SHA256D = 0x00
    BLAKE3 = 0x01
    K12 = 0x02
    ARGON2ID_LIGHT = 0x03
    RANDOMX_LIGHT = 0x04


# DAA Mode IDs
class DaaMode:
    FIXED = 0x00
    EPOCH = 0x01
    ASERT = 0x02
    LWMA = 0x03
    SCHEDULE = 0x04


class ContainerType:
    COLLECTION = 'collection'
    ALBUM = 'album'
    BUNDLE = 'bundle'
    SERIES = 'series'


class AuthorityType:
    ISSUER = 'issuer'
    MANAGER = 'manager'
    DELEGATE = 'delegate'
    BADGE = 'badge'


class StorageType:
    INLINE = 'inline'
    REF = 'ref'
    IPFS = 'ipfs'


class UpdateOperation:
    REPLACE = 'replace'
    MERGE = 'merge'
    APPEND = 'append'
    REMOVE = 'remove'


class GlyphDefaults:
    FT_DECIMALS = 8
    BURN_CONFIRMATIONS = 6
    ASERT_HALFLIFE = 3600
    TARGET_MINT_TIME = 60
    MAX_SUBDOMAIN_DEPTH = 5


def get_protocol_name(protocol_id: int) -> str:
    """Get human-readable name for a protocol ID."""
    return PROTOCOL_NAMES.get(protocol_id, f'Unknown({protocol_id})')
