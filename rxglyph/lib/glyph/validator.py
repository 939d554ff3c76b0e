"""
Glyph v2 validator.

Two entry points with different reporting contracts:

  validate_protocols stops at the first broken rule, checked in a fixed
  priority order (structure, exclusions, requirements, standalone,
  burn). Which message is returned for a combination that breaks
  several rules is part of the contract.

  validate_metadata collects every problem it finds.

Neither ever raises; malformed input is just another validation error.
"""

from numbers import Real
from typing import Any, List, NamedTuple, Optional

from rxglyph.lib.util import utf8_len
from rxglyph.lib.glyph.constants import (
    KNOWN_VERSIONS, GlyphLimits, GlyphProtocol, GlyphTokenType,
    get_protocol_name,
)
from rxglyph.lib.glyph.metadata import SECTION_KEYS, as_dict

P = GlyphProtocol


class ProtocolValidation(NamedTuple):
    valid: bool
    error: Optional[str] = None


class MetadataValidation(NamedTuple):
    valid: bool
    errors: List[str]


# Protocol -> protocols it requires
PROTOCOL_REQUIREMENTS = {
    P.GLYPH_DMINT: (P.GLYPH_FT,),
    P.GLYPH_MUT: (P.GLYPH_NFT,),
    P.GLYPH_CONTAINER: (P.GLYPH_NFT,),
    P.GLYPH_ENCRYPTED: (P.GLYPH_NFT,),
    P.GLYPH_TIMELOCK: (P.GLYPH_ENCRYPTED,),
    P.GLYPH_AUTHORITY: (P.GLYPH_NFT,),
    P.GLYPH_WAVE: (P.GLYPH_NFT, P.GLYPH_MUT),
}

# Mutually exclusive pairs
PROTOCOL_EXCLUSIONS = (
    (P.GLYPH_FT, P.GLYPH_NFT),
)

# Protocols that cannot be the only one present
PROTOCOLS_REQUIRE_BASE = frozenset((
    P.GLYPH_DMINT,
    P.GLYPH_MUT,
    P.GLYPH_BURN,       # an action marker, not a token type
    P.GLYPH_CONTAINER,
    P.GLYPH_ENCRYPTED,
    P.GLYPH_TIMELOCK,
    P.GLYPH_AUTHORITY,
    P.GLYPH_WAVE,
))

# Sections that must be present (as objects) when their protocol is
SECTION_ERRORS = (
    (P.GLYPH_CONTAINER, 'Container protocol requires container object'),
    (P.GLYPH_DMINT, 'dMint protocol requires dmint configuration'),
    (P.GLYPH_AUTHORITY, 'Authority protocol requires authority object'),
    (P.GLYPH_ENCRYPTED, 'Encrypted protocol requires crypto object'),
)


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def _present(value: Any) -> bool:
    '''Presence as JavaScript truthiness: empty objects and arrays count,
    None, False, empty strings, zero and NaN do not.'''
    if value is None or value is False or value == '':
        return False
    if _is_number(value):
        return value == value and value != 0
    return True


def validate_protocols(protocols) -> ProtocolValidation:
    '''Validate a protocol combination; returns the first violation.'''
    if not isinstance(protocols, (list, tuple)) or not protocols:
        return ProtocolValidation(False, 'Protocols array is required')

    if len(protocols) > GlyphLimits.MAX_PROTOCOLS:
        return ProtocolValidation(
            False, f'Too many protocols (max {GlyphLimits.MAX_PROTOCOLS})')

    for protocol in protocols:
        if not isinstance(protocol, int) or isinstance(protocol, bool):
            return ProtocolValidation(False, f'Invalid protocol ID: {protocol!r}')

    present = set(protocols)

    for a, b in PROTOCOL_EXCLUSIONS:
        if a in present and b in present:
            return ProtocolValidation(
                False, f'{get_protocol_name(a)} and {get_protocol_name(b)} '
                       f'are mutually exclusive')

    for protocol in protocols:
        for required in PROTOCOL_REQUIREMENTS.get(protocol, ()):
            if required not in present:
                return ProtocolValidation(
                    False, f'{get_protocol_name(protocol)} requires '
                           f'{get_protocol_name(required)}')

    if len(protocols) == 1 and protocols[0] in PROTOCOLS_REQUIRE_BASE:
        return ProtocolValidation(
            False, f'{get_protocol_name(protocols[0])} cannot exist alone')

    if P.GLYPH_BURN in present:
        if P.GLYPH_FT not in present and P.GLYPH_NFT not in present:
            return ProtocolValidation(
                False, 'Burn must accompany Fungible Token or Non-Fungible Token')

    return ProtocolValidation(True)


def validate_metadata(metadata) -> MetadataValidation:
    '''Validate a metadata value; returns every violation found.'''
    metadata = as_dict(metadata)
    if not isinstance(metadata, dict):
        return MetadataValidation(False, ['Metadata must be an object'])

    errors: List[str] = []

    v = metadata.get('v')
    if (not isinstance(v, int) or isinstance(v, bool)
            or v not in KNOWN_VERSIONS):
        errors.append('Invalid or missing version (v)')

    if not metadata.get('type') or not isinstance(metadata['type'], str):
        errors.append('Missing type field')

    protocols = metadata.get('p')
    if not isinstance(protocols, (list, tuple)):
        errors.append('Missing protocols array (p)')
        protocols = ()
    else:
        result = validate_protocols(protocols)
        if not result.valid:
            errors.append(result.error)

    _check_text(metadata, 'name', 'Name', GlyphLimits.MAX_NAME_SIZE, errors)
    _check_text(metadata, 'desc', 'Description', GlyphLimits.MAX_DESC_SIZE, errors)

    content = metadata.get('content')

    if P.GLYPH_NFT in protocols:
        if not isinstance(content, dict) or not _present(content.get('primary')):
            errors.append('NFT requires content.primary')

    if P.GLYPH_FT in protocols:
        if not _present(content) and not _present(metadata.get('ticker')):
            errors.append('FT requires ticker if no content')

    for protocol, message in SECTION_ERRORS:
        if protocol in protocols:
            if not isinstance(metadata.get(SECTION_KEYS[protocol]), dict):
                errors.append(message)

    if _present(content):
        if isinstance(content, dict):
            validate_content(content, errors)
        else:
            errors.append('content must be an object')

    royalty = metadata.get('royalty')
    if _present(royalty):
        if isinstance(royalty, dict):
            validate_royalty(royalty, errors)
        else:
            errors.append('royalty must be an object')

    return MetadataValidation(not errors, errors)


def _check_text(metadata, key, label, limit, errors):
    value = metadata.get(key)
    if value is None or value == '':
        return
    if not isinstance(value, str):
        errors.append(f'{label} must be a string')
    elif utf8_len(value) > limit:
        errors.append(f'{label} exceeds {limit} bytes')


def validate_content(content: dict, errors: List[str]) -> None:
    if _present(content.get('primary')):
        validate_content_file(content['primary'], 'content.primary', errors)

    files = content.get('files')
    if isinstance(files, list):
        for i, file in enumerate(files):
            validate_content_file(file, f'content.files[{i}]', errors)

    refs = content.get('refs')
    if isinstance(refs, list):
        for i, ref in enumerate(refs):
            path = f'content.refs[{i}]'
            validate_content_file(ref, path, errors)
            if not isinstance(ref, dict) or not _present(ref.get('uri')):
                errors.append(f'{path} requires uri for external reference')


def validate_content_file(file, path: str, errors: List[str]) -> None:
    if not isinstance(file, dict):
        errors.append(f'{path} must be an object')
        return

    file_path = file.get('path')
    if not _present(file_path):
        errors.append(f'{path} requires path')
    elif not isinstance(file_path, str):
        errors.append(f'{path}.path must be a string')
    elif utf8_len(file_path) > GlyphLimits.MAX_PATH_SIZE:
        errors.append(f'{path}.path exceeds {GlyphLimits.MAX_PATH_SIZE} bytes')

    mime = file.get('mime')
    if not _present(mime):
        errors.append(f'{path} requires mime type')
    elif not isinstance(mime, str):
        errors.append(f'{path}.mime must be a string')
    elif utf8_len(mime) > GlyphLimits.MAX_MIME_SIZE:
        errors.append(f'{path}.mime exceeds {GlyphLimits.MAX_MIME_SIZE} bytes')

    if not _is_number(file.get('size')):
        errors.append(f'{path} requires size')

    file_hash = file.get('hash')
    if (not isinstance(file_hash, dict) or not _present(file_hash.get('algo'))
            or not _present(file_hash.get('hex'))):
        errors.append(f'{path} requires hash with algo and hex')


def validate_royalty(royalty: dict, errors: List[str]) -> None:
    bps = royalty.get('bps')
    if not _is_number(bps) or not 0 <= bps <= GlyphLimits.MAX_ROYALTY_BPS:
        errors.append(f'Royalty bps must be 0-{GlyphLimits.MAX_ROYALTY_BPS}')

    if not _present(royalty.get('address')):
        errors.append('Royalty requires address')

    splits = royalty.get('splits')
    if isinstance(splits, list):
        total_bps = 0
        for i, split in enumerate(splits):
            if not isinstance(split, dict):
                errors.append(f'royalty.splits[{i}] must be an object')
                continue
            if not _present(split.get('address')):
                errors.append(f'royalty.splits[{i}] requires address')
            if not _is_number(split.get('bps')):
                errors.append(f'royalty.splits[{i}] requires bps')
            else:
                total_bps += split['bps']
        if total_bps != bps:
            errors.append('Royalty splits must sum to total bps')


def is_valid_glyph(metadata) -> bool:
    return validate_metadata(metadata).valid


def get_token_type(protocols) -> str:
    """Get a human-readable token type from a protocol list."""
    if P.GLYPH_FT in protocols:
        if P.GLYPH_DMINT in protocols:
            return 'dMint Fungible Token'
        return 'Fungible Token'

    if P.GLYPH_NFT in protocols:
        if P.GLYPH_WAVE in protocols:
            return 'WAVE Name'
        if P.GLYPH_AUTHORITY in protocols:
            return 'Authority Token'
        if P.GLYPH_CONTAINER in protocols:
            return 'Container'
        if P.GLYPH_ENCRYPTED in protocols:
            return 'Encrypted NFT'
        if P.GLYPH_MUT in protocols:
            return 'Mutable NFT'
        return 'NFT'

    if P.GLYPH_DAT in protocols:
        return 'Data Token'

    return 'Unknown'


def get_token_type_id(protocols) -> int:
    """Map protocol list to a stable token type ID."""
    if not protocols:
        return GlyphTokenType.UNKNOWN

    if P.GLYPH_FT in protocols:
        if P.GLYPH_DMINT in protocols:
            return GlyphTokenType.DMINT
        return GlyphTokenType.FT

    if P.GLYPH_NFT in protocols:
        if P.GLYPH_WAVE in protocols:
            return GlyphTokenType.WAVE
        if P.GLYPH_CONTAINER in protocols:
            return GlyphTokenType.CONTAINER
        if P.GLYPH_AUTHORITY in protocols:
            return GlyphTokenType.AUTHORITY
        return GlyphTokenType.NFT

    if P.GLYPH_DAT in protocols:
        return GlyphTokenType.DAT

    return GlyphTokenType.UNKNOWN


def is_fungible(protocols) -> bool:
    """Check if protocols indicate a fungible token."""
    return P.GLYPH_FT in protocols


def is_nft(protocols) -> bool:
    """Check if protocols indicate an NFT."""
    return P.GLYPH_NFT in protocols


def is_dmint(protocols) -> bool:
    """Check if protocols indicate a dMint token."""
    return P.GLYPH_DMINT in protocols


def is_mutable(protocols) -> bool:
    """Check if protocols indicate a mutable token."""
    return P.GLYPH_MUT in protocols


def is_container(protocols) -> bool:
    """Check if protocols indicate a container."""
    return P.GLYPH_CONTAINER in protocols
