"""
Canonical serialization of Glyph metadata.

Canonical bytes are compact JSON with every object's keys sorted, so
that two structurally equal metadata values always hash the same no
matter how their keys were inserted. Keys are ordered by UTF-16 code
unit, the order JavaScript uses when it sorts strings. For keys inside
the Basic Multilingual Plane this is plain code point order.

Numbers are written the way JavaScript's JSON.stringify writes them:
integral values without a fraction, plain decimals between 1e-7 and
1e21, and unpadded exponents (``1e-7``, ``1.5e+21``) outside that range.
"""

import json
import math
import re
from typing import Any

from rxglyph.lib.glyph.errors import FormatError

_LONE_SURROGATE = re.compile('[\ud800-\udfff]')


def _utf16_key(key: str) -> bytes:
    return key.encode('utf-16-be', 'surrogatepass')


def canonicalize(value: Any) -> Any:
    '''Return a copy of *value* with all mapping keys sorted recursively.

    Sequences keep their element order, each element canonicalized.
    None and primitives are returned unchanged.
    '''
    if isinstance(value, dict):
        for key in value:
            if not isinstance(key, str):
                raise FormatError(f'object keys must be strings, got {key!r}')
        return {key: canonicalize(value[key])
                for key in sorted(value, key=_utf16_key)}
    if isinstance(value, (list, tuple)):
        return [canonicalize(item) for item in value]
    return value


def js_number(value: float) -> str:
    '''Format a finite float as ECMAScript Number::toString does.'''
    if value == 0:
        return '0'
    sign = '-' if value < 0 else ''
    mantissa, _, exponent = repr(abs(value)).partition('e')
    int_part, _, frac_part = mantissa.partition('.')
    digits = int_part + frac_part
    # Decimal point position relative to the start of digits
    point = len(int_part) + int(exponent or 0)
    stripped = digits.lstrip('0')
    point -= len(digits) - len(stripped)
    digits = stripped.rstrip('0')
    k, n = len(digits), point

    if k <= n <= 21:
        text = digits + '0' * (n - k)
    elif 0 < n <= 21:
        text = digits[:n] + '.' + digits[n:]
    elif -6 < n <= 0:
        text = '0.' + '0' * -n + digits
    else:
        e = n - 1
        exp = f'e{"+" if e >= 0 else "-"}{abs(e)}'
        text = digits + exp if k == 1 else f'{digits[0]}.{digits[1:]}{exp}'
    return sign + text


def _encode(value: Any, parts: list) -> None:
    if value is None:
        parts.append('null')
    elif value is True:
        parts.append('true')
    elif value is False:
        parts.append('false')
    elif isinstance(value, str):
        parts.append(json.dumps(value, ensure_ascii=False))
    elif isinstance(value, int):
        parts.append(int.__repr__(value))
    elif isinstance(value, float):
        if not math.isfinite(value):
            raise FormatError(f'metadata is not JSON-serializable: {value!r}')
        parts.append(js_number(value))
    elif isinstance(value, dict):
        parts.append('{')
        for i, (key, item) in enumerate(value.items()):
            if i:
                parts.append(',')
            parts.append(json.dumps(key, ensure_ascii=False))
            parts.append(':')
            _encode(item, parts)
        parts.append('}')
    elif isinstance(value, list):
        parts.append('[')
        for i, item in enumerate(value):
            if i:
                parts.append(',')
            _encode(item, parts)
        parts.append(']')
    else:
        raise FormatError(
            f'metadata is not JSON-serializable: {type(value).__name__}')


def canonical_json(value: Any) -> str:
    '''Canonical compact JSON text of *value*.'''
    parts = []
    try:
        _encode(canonicalize(value), parts)
    except RecursionError:
        raise FormatError('metadata is nested too deeply') from None
    # Lone surrogates are escaped, as JSON.stringify does
    return _LONE_SURROGATE.sub(lambda m: f'\\u{ord(m.group()):04x}', ''.join(parts))


def canonical_bytes(value: Any) -> bytes:
    '''Canonical UTF-8 bytes of *value*.'''
    return canonical_json(value).encode('utf-8')
