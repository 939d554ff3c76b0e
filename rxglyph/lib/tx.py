"""
Minimal transaction model and raw-transaction deserializer.

The Glyph decoder only needs enumerable outputs with a locking script
(``pk_script``) and enumerable inputs with an unlocking script
(``script``); any object with that shape works, these namedtuples are
what :class:`Deserializer` produces from raw bytes.
"""

from collections import namedtuple

from rxglyph.lib.hash import double_sha256, hash_to_hex_str
from rxglyph.lib.util import (
    pack_le_int32, pack_le_uint32, pack_le_uint64, pack_varbytes, pack_varint,
    unpack_le_int32_from, unpack_le_uint16_from, unpack_le_uint32_from,
    unpack_le_uint64_from,
)


class TxDeserializeError(Exception):
    '''Raised when raw transaction bytes are truncated or malformed.'''


class Tx(namedtuple("Tx", "version inputs outputs locktime")):
    '''Class representing a transaction.'''

    def serialize(self):
        return b''.join((
            pack_le_int32(self.version),
            pack_varint(len(self.inputs)),
            b''.join(tx_in.serialize() for tx_in in self.inputs),
            pack_varint(len(self.outputs)),
            b''.join(tx_out.serialize() for tx_out in self.outputs),
            pack_le_uint32(self.locktime),
        ))


class TxInput(namedtuple("TxInput", "prev_hash prev_idx script sequence")):
    '''Class representing a transaction input.'''

    def __str__(self):
        prev_hash = hash_to_hex_str(self.prev_hash)
        return (f"Input({prev_hash}, {self.prev_idx:d}, script={self.script.hex()}, "
                f"sequence={self.sequence:d})")

    def serialize(self):
        return b''.join((
            self.prev_hash,
            pack_le_uint32(self.prev_idx),
            pack_varbytes(self.script),
            pack_le_uint32(self.sequence),
        ))


class TxOutput(namedtuple("TxOutput", "value pk_script")):

    def serialize(self):
        return b''.join((
            pack_le_uint64(self.value),
            pack_varbytes(self.pk_script),
        ))


class Deserializer:
    '''Deserializes legacy-format transactions.

    Every length-prefixed field is checked against the bytes that remain
    before it is sliced, so a hostile count or length can never cause a
    large allocation.
    '''

    # Smallest possible serialized input and output
    MIN_INPUT_SIZE = 32 + 4 + 1 + 4
    MIN_OUTPUT_SIZE = 8 + 1

    def __init__(self, binary, start=0):
        assert isinstance(binary, (bytes, bytearray, memoryview))
        self.binary = binary
        self.binary_length = len(binary)
        self.cursor = start

    def read_tx(self):
        '''Return a deserialized transaction.'''
        tx = Tx(
            self._read_le_int32(),  # version
            self._read_inputs(),    # inputs
            self._read_outputs(),   # outputs
            self._read_le_uint32()  # locktime
        )
        if self.cursor != self.binary_length:
            raise TxDeserializeError(
                f'{self.binary_length - self.cursor:,d} trailing bytes after transaction')
        return tx

    def read_tx_and_hash(self):
        '''Return a (deserialized TX, tx_hash) pair.

        The hash needs to be reversed for human display; for efficiency
        we process it in the natural serialized order.
        '''
        start = self.cursor
        tx = self.read_tx()
        return tx, double_sha256(self.binary[start:self.cursor])

    def _read_inputs(self):
        read_input = self._read_input
        count = self._read_count(self.MIN_INPUT_SIZE)
        return [read_input() for i in range(count)]

    def _read_input(self):
        return TxInput(
            self._read_nbytes(32),   # prev_hash
            self._read_le_uint32(),  # prev_idx
            self._read_varbytes(),   # script
            self._read_le_uint32()   # sequence
        )

    def _read_outputs(self):
        read_output = self._read_output
        count = self._read_count(self.MIN_OUTPUT_SIZE)
        return [read_output() for i in range(count)]

    def _read_output(self):
        return TxOutput(
            self._read_le_uint64(), # value
            self._read_varbytes(),  # pk_script
        )

    def _remaining(self):
        return self.binary_length - self.cursor

    def _read_count(self, min_item_size):
        count = self._read_varint()
        if count * min_item_size > self._remaining():
            raise TxDeserializeError(f'item count {count:,d} exceeds remaining bytes')
        return count

    def _read_nbytes(self, n):
        cursor = self.cursor
        end = cursor + n
        if n < 0 or end > self.binary_length:
            raise TxDeserializeError(
                f'need {n:,d} bytes at offset {cursor:,d}, have {self._remaining():,d}')
        self.cursor = end
        return bytes(self.binary[cursor:end])

    def _read_varbytes(self):
        return self._read_nbytes(self._read_varint())

    def _read_varint(self):
        n = self._read_nbytes(1)[0]
        if n < 253:
            return n
        if n == 253:
            return self._read_le_uint16()
        if n == 254:
            return self._read_le_uint32()
        return self._read_le_uint64()

    def _read_le_int32(self):
        result, = unpack_le_int32_from(self._read_nbytes(4))
        return result

    def _read_le_uint16(self):
        result, = unpack_le_uint16_from(self._read_nbytes(2))
        return result

    def _read_le_uint32(self):
        result, = unpack_le_uint32_from(self._read_nbytes(4))
        return result

    def _read_le_uint64(self):
        result, = unpack_le_uint64_from(self._read_nbytes(8))
        return result


def tx_hash_hex(tx_hash):
    '''Display form (txid) of a serialized-order transaction hash.'''
    return hash_to_hex_str(tx_hash)
