"""
Glyph metadata record.

A token's metadata is a fixed core (``v``, ``type``, ``p``), a handful
of common optional fields, and optional sections that only mean
something when their owning protocol is selected: ``dmint`` belongs to
DMINT, ``container`` to CONTAINER and so on. GlyphMetadata keeps those
sections keyed by protocol ID so that code asks "what does DMINT carry"
instead of probing for attributes.

Decoded metadata arrives as plain dicts; GlyphMetadata.from_dict and
to_dict convert without loss, unknown keys riding along in ``extra``.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

from rxglyph.lib.glyph.constants import DEFAULT_VERSION, GlyphProtocol

P = GlyphProtocol

# Section key -> owning protocol
SECTION_OWNERS = {
    'dmint': P.GLYPH_DMINT,
    'mutable': P.GLYPH_MUT,
    'container': P.GLYPH_CONTAINER,
    'authority': P.GLYPH_AUTHORITY,
    'crypto': P.GLYPH_ENCRYPTED,
    'wave': P.GLYPH_WAVE,
}
SECTION_KEYS = {protocol: key for key, protocol in SECTION_OWNERS.items()}

COMMON_FIELDS = ('name', 'desc', 'ticker', 'content', 'royalty')


@dataclass
class GlyphMetadata:
    type: str
    p: List[int]
    v: int = DEFAULT_VERSION
    name: Optional[str] = None
    desc: Optional[str] = None
    ticker: Optional[str] = None
    content: Optional[Dict[str, Any]] = None
    royalty: Optional[Dict[str, Any]] = None
    # protocol ID -> section body
    sections: Dict[int, Any] = field(default_factory=dict)
    extra: Dict[str, Any] = field(default_factory=dict)

    def has_protocol(self, protocol: int) -> bool:
        return protocol in self.p

    def section(self, protocol: int) -> Optional[Any]:
        '''The section owned by *protocol*, if that protocol is selected.'''
        if protocol not in self.p:
            return None
        return self.sections.get(protocol)

    def set_section(self, protocol: int, body: Any) -> None:
        if protocol not in SECTION_KEYS:
            raise KeyError(f'protocol {protocol} owns no metadata section')
        self.sections[protocol] = body

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = dict(self.extra)
        result['v'] = self.v
        result['type'] = self.type
        result['p'] = list(self.p)
        for name in COMMON_FIELDS:
            value = getattr(self, name)
            if value is not None:
                result[name] = value
        for protocol, body in self.sections.items():
            result[SECTION_KEYS[protocol]] = body
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'GlyphMetadata':
        '''Build a record from decoded metadata; a ``p`` that is not a list
        reads as no protocols.'''
        data = dict(data)
        protocols = data.pop('p', None)
        if not isinstance(protocols, (list, tuple)):
            protocols = []
        record = cls(type=data.pop('type', None), p=list(protocols),
                     v=data.pop('v', DEFAULT_VERSION))
        for name in COMMON_FIELDS:
            if name in data:
                setattr(record, name, data.pop(name))
        for key, protocol in SECTION_OWNERS.items():
            if key in data:
                record.sections[protocol] = data.pop(key)
        record.extra = data
        return record


MetadataLike = Union[GlyphMetadata, Mapping[str, Any]]


def as_dict(metadata: MetadataLike) -> Any:
    '''Plain-dict view of *metadata*; non-records are returned as given.'''
    if isinstance(metadata, GlyphMetadata):
        return metadata.to_dict()
    return metadata


def extract_token_info(metadata: Mapping[str, Any],
                       envelope=None) -> Dict[str, Any]:
    """Extract a normalized token-info dict from decoded metadata.

    Handles both v1 (``type`` string, short keys) and v2 (``p`` list)
    formats.
    """
    version = metadata.get('v', getattr(envelope, 'version', DEFAULT_VERSION))
    protocols = metadata.get('p')
    if not isinstance(protocols, (list, tuple)):
        protocols = []

    # v1 legacy: infer protocols from 'type' string
    if not protocols and 'type' in metadata:
        _type_map = {
            'ft': [P.GLYPH_FT],
            'nft': [P.GLYPH_NFT],
            'dat': [P.GLYPH_DAT],
        }
        protocols = _type_map.get(str(metadata['type']).lower(), [])

    token_info: Dict[str, Any] = {
        'protocols': list(protocols),
        'version': version,
        'name': metadata.get('name') or metadata.get('n'),
        'ticker': metadata.get('ticker') or metadata.get('tk'),
        'decimals': metadata.get('decimals') or metadata.get('dc', 0),
    }

    if 'attrs' in metadata:
        token_info['attrs'] = metadata['attrs']

    content = metadata.get('content')
    if isinstance(content, dict) and isinstance(content.get('primary'), dict):
        primary = content['primary']
        token_info['content'] = {
            'path': primary.get('path'),
            'mime': primary.get('mime'),
            'size': primary.get('size'),
        }

    # dMint fields, top-level (v1) or nested 'dmint' section (v2)
    if P.GLYPH_DMINT in protocols:
        nested = metadata.get('dmint')
        dm = nested if isinstance(nested, dict) else {}
        token_info['dmint'] = {
            'algorithm': metadata.get('algorithm', dm.get('algorithm')),
            'start_difficulty': metadata.get('startDiff', dm.get('startDiff')),
            'max_supply': metadata.get('maxSupply', dm.get('maxSupply')),
            'reward': metadata.get('reward', dm.get('reward')),
            'premine': metadata.get('premine', dm.get('premine', 0)),
        }
        daa = metadata.get('daa') or dm.get('daa')
        if isinstance(daa, dict):
            token_info['dmint']['daa_mode'] = daa.get('mode')
            token_info['dmint']['halflife'] = daa.get('halflife')

    royalty = metadata.get('royalty')
    if isinstance(royalty, dict):
        token_info['royalty_bps'] = royalty.get('bps')

    return token_info
