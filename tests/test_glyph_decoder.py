"""
Glyph envelope decoder tests.

Flat-buffer decoding (decode_envelope), chunk-aware reveal decoding,
metadata parsing and the never-raise contract on hostile input.
"""

import os

import cbor2
import pytest

from rxglyph.lib.glyph import (
    GLYPH_MAGIC,
    CommitEnvelope,
    EnvelopeFlags,
    EnvelopeReader,
    FormatError,
    GlyphId,
    GlyphLimits,
    GlyphVersion,
    RevealEnvelope,
    StructuralDecodeError,
    contains_glyph_magic,
    decode_cbor_metadata,
    decode_commit_envelope,
    decode_envelope,
    decode_metadata,
    decode_reveal_chunks,
    decode_reveal_envelope,
    decode_script,
    encode_commit_envelope,
    find_glyph_magic,
    get_glyph_id,
    is_glyph_op_return,
    parse_glyph_id,
)

_HASH = bytes(range(32))
_REVEAL_HEADER = GLYPH_MAGIC + bytes([GlyphVersion.V2, EnvelopeFlags.IS_REVEAL])


class TestMagicScan:

    def test_contains(self):
        assert contains_glyph_magic(b'\x00\x6agly')
        assert not contains_glyph_magic(b'glX')
        assert not contains_glyph_magic(b'')

    def test_find(self):
        assert find_glyph_magic(b'xxgly') == 2
        assert find_glyph_magic(b'glyglyph') == 0
        assert find_glyph_magic(b'nothing') == -1

    def test_buffer_types(self):
        data = b'\x00\x6agly'
        for buf in (bytearray(data), memoryview(data)):
            assert contains_glyph_magic(buf)
            assert find_glyph_magic(buf) == 2
            assert is_glyph_op_return(buf)

    def test_decode_memoryview(self):
        data = encode_commit_envelope(_HASH)
        assert decode_envelope(memoryview(data)) == decode_envelope(data)
        assert decode_envelope(bytearray(data)).commit_hash == _HASH
        script = b'\x00\x6a' + bytes([len(data)]) + data
        assert decode_script(memoryview(script)).commit_hash == _HASH
        chunks = [memoryview(_REVEAL_HEADER), memoryview(b'{"v":2}')]
        assert decode_reveal_chunks(chunks).metadata == {'v': 2}


class TestEnvelopeReader:

    def test_reads_in_order(self):
        reader = EnvelopeReader(b'\x01\x02abc')
        assert reader.read_uint8() == 1
        assert reader.read_uint8() == 2
        assert reader.remaining() == 3
        assert reader.read(3) == b'abc'
        assert reader.remaining() == 0

    def test_short_read_raises(self):
        reader = EnvelopeReader(b'abc', 1)
        with pytest.raises(StructuralDecodeError):
            reader.read(3)

    def test_read_all_limit(self):
        reader = EnvelopeReader(bytes(10))
        with pytest.raises(StructuralDecodeError):
            reader.read_all(9)
        assert reader.read_all(10) == bytes(10)


class TestDecodeCommit:

    def test_minimal(self):
        env = decode_envelope(encode_commit_envelope(_HASH))
        assert env == CommitEnvelope(GlyphVersion.V2, 0, _HASH)
        assert env.type == 'commit'
        assert not env.is_reveal

    def test_all_fields(self):
        root = b'\x11' * 32
        controller = b'\x22' * 36
        data = encode_commit_envelope(_HASH, EnvelopeFlags.HAS_PROFILE_HINT,
                                      content_root=root, controller=controller)
        env = decode_envelope(data)
        assert env.content_root == root
        assert env.controller == controller
        assert env.has_profile_hint
        assert env.flags == (EnvelopeFlags.HAS_PROFILE_HINT
                             | EnvelopeFlags.HAS_CONTENT_ROOT
                             | EnvelopeFlags.HAS_CONTROLLER)

    def test_reader_entry_points(self):
        root = b'\x33' * 32
        reader = EnvelopeReader(_HASH + root)
        env = decode_commit_envelope(reader, GlyphVersion.V2, EnvelopeFlags.HAS_CONTENT_ROOT)
        assert env.content_root == root
        assert reader.remaining() == 0

        reader = EnvelopeReader(_HASH[:10])
        with pytest.raises(StructuralDecodeError):
            decode_commit_envelope(reader, GlyphVersion.V2, 0)

        env = decode_reveal_envelope(EnvelopeReader(b'{"v":2}'), GlyphVersion.V2,
                                     EnvelopeFlags.IS_REVEAL)
        assert env.metadata == {'v': 2}

    def test_prefixed_by_other_bytes(self):
        data = b'\x00\x6a\x25' + encode_commit_envelope(_HASH)
        assert decode_envelope(data).commit_hash == _HASH

    def test_v1_commit(self):
        data = GLYPH_MAGIC + bytes([GlyphVersion.V1, 0]) + _HASH
        assert decode_envelope(data).version == GlyphVersion.V1

    def test_to_dict(self):
        d = decode_envelope(encode_commit_envelope(_HASH)).to_dict()
        assert d == {
            'type': 'commit',
            'is_reveal': False,
            'version': 2,
            'flags': 0,
            'commit_hash': _HASH.hex(),
            'content_root': None,
            'controller': None,
        }

    @pytest.mark.parametrize("data", [
        GLYPH_MAGIC,
        GLYPH_MAGIC + b'\x02',
        GLYPH_MAGIC + b'\x02\x00',
        GLYPH_MAGIC + b'\x02\x00' + bytes(31),
        GLYPH_MAGIC + b'\x02\x01' + bytes(32) + bytes(31),
        GLYPH_MAGIC + b'\x02\x02' + bytes(32) + bytes(35),
        GLYPH_MAGIC + b'\x03\x00' + bytes(32),
        GLYPH_MAGIC + b'\x00\x00' + bytes(32),
    ], ids=['magic', 'no-flags', 'no-hash', 'short-hash', 'short-root',
            'short-controller', 'unknown-version', 'version-zero'])
    def test_malformed_is_absent(self, data):
        assert decode_envelope(data) is None

    def test_no_magic(self):
        assert decode_envelope(b'\x6a' + bytes(40)) is None
        assert decode_envelope(b'') is None


class TestDecodeReveal:

    def test_json_body(self):
        env = decode_envelope(_REVEAL_HEADER + b'{"v":2,"p":[2],"type":"nft"}')
        assert isinstance(env, RevealEnvelope)
        assert env.metadata == {'v': 2, 'p': [2], 'type': 'nft'}
        assert env.encoding == 'json'
        assert env.raw_metadata is None

    def test_unparseable_body_is_kept(self):
        body = b'{"v":2,'
        env = decode_envelope(_REVEAL_HEADER + body)
        assert env is not None
        assert env.metadata is None
        assert env.raw_metadata == body

    @pytest.mark.parametrize("body", [b'[1,2]', b'"text"', b'42', b'null',
                                      b'{"a":NaN}'])
    def test_non_object_json_is_raw(self, body):
        env = decode_envelope(_REVEAL_HEADER + body)
        assert env.metadata is None
        assert env.raw_metadata == body

    def test_invalid_utf8_replaced(self):
        env = decode_envelope(_REVEAL_HEADER + b'{"name":"\xff"}')
        assert env.metadata == {'name': '\ufffd'}

    def test_empty_body(self):
        env = decode_envelope(_REVEAL_HEADER)
        assert env == RevealEnvelope(GlyphVersion.V2, EnvelopeFlags.IS_REVEAL)

    def test_oversized_body(self):
        body = b' ' * (GlyphLimits.MAX_REVEAL_ENVELOPE_B_SIZE + 1)
        assert decode_envelope(_REVEAL_HEADER + body) is None

    def test_deeply_nested_json(self):
        body = b'[' * 100000 + b']' * 100000
        env = decode_envelope(_REVEAL_HEADER + body)
        assert env is not None
        assert env.metadata is None

    def test_to_dict(self):
        env = decode_envelope(_REVEAL_HEADER + b'\x00\x01')
        d = env.to_dict()
        assert d['type'] == 'reveal'
        assert d['is_reveal'] is True
        assert d['raw_metadata'] == '0001'
        assert d['files'] == []


class TestDecodeRevealChunks:

    def test_style_a(self):
        chunks = [_REVEAL_HEADER, b'{"p":[2]}', b'file-a', b'file-b']
        env = decode_reveal_chunks(chunks)
        assert env.metadata == {'p': [2]}
        assert env.files == (b'file-a', b'file-b')

    def test_style_a_header_only(self):
        env = decode_reveal_chunks([_REVEAL_HEADER])
        assert env == RevealEnvelope(GlyphVersion.V2, EnvelopeFlags.IS_REVEAL)

    def test_style_a_requires_reveal_flag(self):
        header = GLYPH_MAGIC + bytes([GlyphVersion.V2, 0])
        assert decode_reveal_chunks([header, b'{}']) is None

    def test_style_a_unknown_version(self):
        header = GLYPH_MAGIC + bytes([7, EnvelopeFlags.IS_REVEAL])
        assert decode_reveal_chunks([header, b'{}']) is None

    def test_style_b(self):
        env = decode_reveal_chunks([GLYPH_MAGIC, b'{"v":1,"p":[1]}', b'f'])
        assert env.version == GlyphVersion.V1
        assert env.metadata == {'v': 1, 'p': [1]}
        assert env.files == (b'f',)

    def test_style_b_needs_metadata(self):
        assert decode_reveal_chunks([GLYPH_MAGIC]) is None
        assert decode_reveal_chunks([GLYPH_MAGIC, b'\xff\xff']) is None

    def test_cbor_metadata(self):
        env = decode_reveal_chunks([GLYPH_MAGIC, cbor2.dumps({'p': [3]})])
        assert env.encoding == 'cbor'
        assert env.metadata == {'p': [3]}

    def test_not_an_envelope(self):
        assert decode_reveal_chunks([]) is None
        assert decode_reveal_chunks([b'hello', b'{}']) is None


class TestMetadataDecoding:

    def test_decode_metadata(self):
        assert decode_metadata(b'{"v":2}') == {'v': 2}

    @pytest.mark.parametrize("data", [b'', b'[]', b'\xff', b'{"v":', b'{"x":Infinity}'])
    def test_decode_metadata_strict(self, data):
        with pytest.raises(FormatError):
            decode_metadata(data)

    def test_decode_cbor(self):
        assert decode_cbor_metadata(cbor2.dumps({'p': [2], 'name': 'x'})) == {
            'p': [2], 'name': 'x'}

    @pytest.mark.parametrize("data", [b'', cbor2.dumps([1, 2]), b'\xff', b'\x5a\xff'])
    def test_decode_cbor_rejects(self, data):
        assert decode_cbor_metadata(data) is None

    def test_decode_cbor_size_limit(self):
        data = cbor2.dumps({'blob': bytes(GlyphLimits.MAX_METADATA_SIZE)})
        assert decode_cbor_metadata(data) is None


class TestNeverRaises:

    @pytest.mark.parametrize("seed", range(20))
    def test_random_after_magic(self, seed):
        data = GLYPH_MAGIC + os.urandom(seed * 7)
        decode_envelope(data)
        decode_reveal_chunks([data])

    @pytest.mark.parametrize("data", [
        GLYPH_MAGIC + b'\x02\x80' + b'\x00' * 3,
        GLYPH_MAGIC + b'\x02\xff',
        b'gl' + GLYPH_MAGIC + b'\x01',
        bytes(range(256)) + GLYPH_MAGIC,
    ])
    def test_odd_buffers(self, data):
        decode_envelope(data)


class TestOpReturn:

    @pytest.mark.parametrize("script, expected", [
        (b'\x6a\x03gly', True),
        (b'\x00\x6a\x03gly', True),
        (b'\x6a\x03abc', False),
        (b'\x76\xa9\x03gly', False),
        (b'\x00', False),
        (b'', False),
    ])
    def test_is_glyph_op_return(self, script, expected):
        assert is_glyph_op_return(script) is expected


class TestGlyphId:

    @pytest.mark.parametrize("vout", [0, 1, 255, 70000])
    def test_round_trip(self, vout):
        txid = 'ab' * 32
        glyph_id = get_glyph_id(txid, vout)
        assert glyph_id == f'{txid}:{vout}'
        assert parse_glyph_id(glyph_id) == GlyphId(txid, vout)

    def test_unpack(self):
        txid, vout = parse_glyph_id('00ff:3')
        assert (txid, vout) == ('00ff', 3)

    @pytest.mark.parametrize("glyph_id", ['abcd', 'abcd:', 'abcd:x'])
    def test_malformed(self, glyph_id):
        with pytest.raises(ValueError):
            parse_glyph_id(glyph_id)
