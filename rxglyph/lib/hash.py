"""Cryptographic hash providers and txid helpers."""

import hashlib


def sha256(x):
    '''Simple wrapper of hashlib sha256.'''
    return hashlib.sha256(x).digest()


def double_sha256(x):
    '''SHA-256 of SHA-256, as used for transaction hashing.'''
    return sha256(sha256(x))


def hash_to_hex_str(x):
    '''Convert a big-endian binary hash to displayed hex string.

    Display form of a binary hash is reversed and converted to hex.
    '''
    return bytes(reversed(x)).hex()
