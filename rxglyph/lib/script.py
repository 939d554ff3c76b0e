"""
Script push handling for Glyph envelopes.

Only the slice of script semantics the envelope layer needs: encoding
chunks as minimal data pushes, recovering the ordered push payloads
from raw script bytes, and assembling an OP_RETURN reveal script.
"""

from typing import Iterable, List

from rxglyph.lib.util import pack_le_uint16, pack_le_uint32


class OpCodes:
    OP_0 = 0x00
    OP_FALSE = OP_0
    OP_PUSHDATA1 = 0x4c
    OP_PUSHDATA2 = 0x4d
    OP_PUSHDATA4 = 0x4e
    OP_3 = 0x53
    OP_RETURN = 0x6a
    OP_DROP = 0x75
    # Radiant reference opcodes carry a 36-byte outpoint inline
    OP_PUSHINPUTREF = 0xd0
    OP_REQUIREINPUTREF = 0xd1
    OP_DISALLOWPUSHINPUTREF = 0xd2
    OP_DISALLOWPUSHINPUTREFSIBLING = 0xd3
    OP_PUSHINPUTREFSINGLETON = 0xd8


REF_OPCODES = frozenset((
    OpCodes.OP_PUSHINPUTREF,
    OpCodes.OP_REQUIREINPUTREF,
    OpCodes.OP_DISALLOWPUSHINPUTREF,
    OpCodes.OP_DISALLOWPUSHINPUTREFSIBLING,
    OpCodes.OP_PUSHINPUTREFSINGLETON,
))
REF_LEN = 36


class ScriptError(Exception):
    '''Raised when data cannot be expressed as a script push.'''


def push_data(data: bytes) -> bytes:
    '''Encode *data* as a minimal data push.'''
    n = len(data)
    if n == 0:
        return bytes([OpCodes.OP_0])
    if n < OpCodes.OP_PUSHDATA1:
        return bytes([n]) + data
    if n <= 0xff:
        return bytes([OpCodes.OP_PUSHDATA1, n]) + data
    if n <= 0xffff:
        return bytes([OpCodes.OP_PUSHDATA2]) + pack_le_uint16(n) + data
    if n <= 0xffffffff:
        return bytes([OpCodes.OP_PUSHDATA4]) + pack_le_uint32(n) + data
    raise ScriptError(f'push of {n:,d} bytes is too large')


def parse_script_pushes(data: bytes) -> List[bytes]:
    """Extract an ordered list of data-push payloads from raw script bytes.

    Skips non-push opcodes (OP_RETURN, OP_3, OP_DROP, etc.) and the
    36-byte inline operand of the Radiant ref opcodes. OP_0 yields an
    empty payload. A push whose declared length runs past the end of
    the script stops the scan; what was recovered so far is returned.
    """
    pushes: List[bytes] = []
    pos = 0
    length = len(data)
    while pos < length:
        op = data[pos]
        pos += 1

        if op == OpCodes.OP_0:
            pushes.append(b'')
            continue
        if op < OpCodes.OP_PUSHDATA1:
            dlen = op
        elif op == OpCodes.OP_PUSHDATA1:
            if pos + 1 > length:
                break
            dlen = data[pos]
            pos += 1
        elif op == OpCodes.OP_PUSHDATA2:
            if pos + 2 > length:
                break
            dlen = data[pos] | (data[pos + 1] << 8)
            pos += 2
        elif op == OpCodes.OP_PUSHDATA4:
            if pos + 4 > length:
                break
            dlen = (data[pos] | (data[pos + 1] << 8)
                    | (data[pos + 2] << 16) | (data[pos + 3] << 24))
            pos += 4
        elif op in REF_OPCODES:
            pos += REF_LEN
            continue
        else:
            continue

        end = pos + dlen
        if end > length:
            break
        pushes.append(bytes(data[pos:end]))
        pos = end

    return pushes


def build_reveal_script(chunks: Iterable[bytes]) -> bytes:
    '''Assemble OP_FALSE OP_RETURN followed by one push per chunk.'''
    parts = [bytes([OpCodes.OP_FALSE, OpCodes.OP_RETURN])]
    parts.extend(push_data(chunk) for chunk in chunks)
    return b''.join(parts)
