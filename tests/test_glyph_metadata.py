"""
Glyph constants and metadata record tests.
"""

import pytest

from rxglyph.lib.glyph import (
    ALL_PROTOCOLS,
    GLYPH_MAGIC,
    GLYPH_MAGIC_HEX,
    HEADER_SIZE,
    PROTOCOL_NAMES,
    SECTION_KEYS,
    AuthorityType,
    ContainerType,
    DaaMode,
    DmintAlgorithm,
    EnvelopeFlags,
    GlyphDefaults,
    GlyphLimits,
    GlyphMetadata,
    GlyphProtocol as P,
    GlyphTokenType,
    StorageType,
    UpdateOperation,
    extract_token_info,
    get_protocol_name,
)


class TestConstants:

    def test_magic(self):
        assert GLYPH_MAGIC == b'gly'
        assert GLYPH_MAGIC.hex() == GLYPH_MAGIC_HEX
        assert HEADER_SIZE == 5

    def test_protocol_ids(self):
        assert ALL_PROTOCOLS == tuple(range(1, 12))
        assert (P.GLYPH_FT, P.GLYPH_NFT, P.GLYPH_DMINT, P.GLYPH_WAVE) == (1, 2, 4, 11)
        assert set(PROTOCOL_NAMES) == set(ALL_PROTOCOLS)

    def test_flags(self):
        assert EnvelopeFlags.HAS_CONTENT_ROOT == 0x01
        assert EnvelopeFlags.HAS_CONTROLLER == 0x02
        assert EnvelopeFlags.HAS_PROFILE_HINT == 0x04
        assert EnvelopeFlags.IS_REVEAL == 0x80

    def test_limits(self):
        assert GlyphLimits.MAX_METADATA_SIZE == 256 * 1024
        assert GlyphLimits.MAX_REVEAL_ENVELOPE_B_SIZE == 12 * 1024 * 1024
        assert GlyphLimits.MAX_INLINE_FILE_SIZE == 1024 * 1024
        assert GlyphLimits.MAX_TOTAL_INLINE_SIZE == 10 * 1024 * 1024
        assert GlyphLimits.MAX_PROTOCOLS == 16

    def test_enumerations(self):
        assert (DmintAlgorithm.SHA256D, DmintAlgorithm.RANDOMX_LIGHT) == (0, 4)
        assert (DaaMode.FIXED, DaaMode.ASERT, DaaMode.SCHEDULE) == (0, 2, 4)
        assert ContainerType.COLLECTION == 'collection'
        assert AuthorityType.DELEGATE == 'delegate'
        assert StorageType.IPFS == 'ipfs'
        assert UpdateOperation.MERGE == 'merge'
        assert GlyphDefaults.FT_DECIMALS == 8
        assert GlyphDefaults.ASERT_HALFLIFE == 3600
        assert (GlyphTokenType.UNKNOWN, GlyphTokenType.AUTHORITY) == (0, 7)

    def test_protocol_name(self):
        assert get_protocol_name(1) == 'Fungible Token'
        assert get_protocol_name(11) == 'WAVE Name'
        assert get_protocol_name(99) == 'Unknown(99)'


class TestGlyphMetadata:

    def test_round_trip(self):
        data = {'v': 2, 'type': 'ft', 'p': [1, 4], 'ticker': 'MINE',
                'dmint': {'algorithm': 1}, 'custom': [1, 2]}
        record = GlyphMetadata.from_dict(data)
        assert record.ticker == 'MINE'
        assert record.sections == {P.GLYPH_DMINT: {'algorithm': 1}}
        assert record.extra == {'custom': [1, 2]}
        assert record.to_dict() == data

    def test_from_dict_does_not_consume_input(self):
        data = {'type': 'nft', 'p': [2], 'name': 'n'}
        GlyphMetadata.from_dict(data)
        assert data == {'type': 'nft', 'p': [2], 'name': 'n'}

    @pytest.mark.parametrize("protocols", [5, None, 'ab', {'1': 1}])
    def test_from_dict_junk_protocols(self, protocols):
        record = GlyphMetadata.from_dict({'type': 'nft', 'p': protocols, 'container': {}})
        assert record.p == []
        assert record.section(P.GLYPH_CONTAINER) is None

    def test_from_dict_tuple_protocols(self):
        assert GlyphMetadata.from_dict({'type': 'ft', 'p': (1, 4)}).p == [1, 4]

    def test_section_requires_protocol(self):
        record = GlyphMetadata(type='nft', p=[2])
        record.set_section(P.GLYPH_CONTAINER, {'type': 'album'})
        assert record.section(P.GLYPH_CONTAINER) is None
        record.p.append(P.GLYPH_CONTAINER)
        assert record.section(P.GLYPH_CONTAINER) == {'type': 'album'}
        assert record.has_protocol(P.GLYPH_CONTAINER)

    def test_set_section_unknown_protocol(self):
        record = GlyphMetadata(type='nft', p=[2])
        with pytest.raises(KeyError):
            record.set_section(P.GLYPH_BURN, {})

    def test_section_keys(self):
        assert SECTION_KEYS[P.GLYPH_ENCRYPTED] == 'crypto'
        assert SECTION_KEYS[P.GLYPH_MUT] == 'mutable'

    def test_optional_fields_omitted(self):
        assert GlyphMetadata(type='dat', p=[3]).to_dict() == {
            'v': 2, 'type': 'dat', 'p': [3]}


class TestExtractTokenInfo:

    def test_v2(self):
        metadata = {'v': 2, 'type': 'nft', 'p': [2], 'name': 'Pic',
                    'content': {'primary': {'path': 'a.png', 'mime': 'image/png', 'size': 9}},
                    'royalty': {'bps': 250, 'address': 'a'}}
        info = extract_token_info(metadata)
        assert info['protocols'] == [2]
        assert info['version'] == 2
        assert info['name'] == 'Pic'
        assert info['content'] == {'path': 'a.png', 'mime': 'image/png', 'size': 9}
        assert info['royalty_bps'] == 250

    def test_v1_short_keys(self):
        info = extract_token_info({'type': 'FT', 'n': 'Coin', 'tk': 'C', 'dc': 2})
        assert info['protocols'] == [P.GLYPH_FT]
        assert info['name'] == 'Coin'
        assert info['ticker'] == 'C'
        assert info['decimals'] == 2

    def test_junk_protocols(self):
        info = extract_token_info({'p': '14', 'dmint': 'x'})
        assert info['protocols'] == []
        assert 'dmint' not in info

    def test_dmint_nested(self):
        metadata = {'p': [1, 4], 'dmint': {'algorithm': 1, 'maxSupply': 100,
                                           'daa': {'mode': 2, 'halflife': 3600}}}
        dmint = extract_token_info(metadata)['dmint']
        assert dmint['algorithm'] == 1
        assert dmint['max_supply'] == 100
        assert dmint['premine'] == 0
        assert dmint['daa_mode'] == 2
        assert dmint['halflife'] == 3600
