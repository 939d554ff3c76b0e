"""
Miscellaneous helpers for rxglyph.

Logger construction follows the ElectrumX convention: one named root
logger for the process, hierarchical per-class loggers below it.
"""

import logging
import struct
import sys


class CompactFormatter(logging.Formatter):
    '''Strips the module from the logger name to leave the class name.'''

    def format(self, record):
        record.name = record.name.rpartition('.')[-1]
        return super().format(record)


def make_logger(name, *, handler=None, level=logging.INFO):
    '''Return the root rxglyph logger.'''
    if handler is None:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(CompactFormatter('%(levelname)s:%(name)s:%(message)s'))
    logger = logging.getLogger(name)
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger


def class_logger(path, classname):
    '''Return a hierarchical logger for a class.'''
    return logging.getLogger(path).getChild(classname)


def log_level(name):
    '''Map a level name like "info" to its logging constant.'''
    level = logging.getLevelName(str(name).upper())
    if not isinstance(level, int):
        raise ValueError(f'unknown log level: {name!r}')
    return level


struct_le_H = struct.Struct('<H')
struct_le_I = struct.Struct('<I')
struct_le_Q = struct.Struct('<Q')
struct_le_i = struct.Struct('<i')

pack_le_uint16 = struct_le_H.pack
pack_le_uint32 = struct_le_I.pack
pack_le_uint64 = struct_le_Q.pack
pack_le_int32 = struct_le_i.pack

unpack_le_uint16_from = struct_le_H.unpack_from
unpack_le_uint32_from = struct_le_I.unpack_from
unpack_le_uint64_from = struct_le_Q.unpack_from
unpack_le_int32_from = struct_le_i.unpack_from


def pack_varint(n):
    if n < 253:
        return bytes([n])
    if n < 65536:
        return b'\xfd' + pack_le_uint16(n)
    if n < 4294967296:
        return b'\xfe' + pack_le_uint32(n)
    return b'\xff' + pack_le_uint64(n)


def pack_varbytes(data):
    return pack_varint(len(data)) + data


def utf8_len(text):
    '''Length of *text* in UTF-8 bytes.'''
    return len(text.encode('utf-8', 'surrogatepass'))
