"""
Glyph error taxonomy.

Encode-path problems raise FormatError or SizeLimitError.
Decode-path problems never escape the decoder: the envelope reader
raises StructuralDecodeError and the decoder turns it into "no
envelope". Validation never raises at all.
"""


class GlyphError(Exception):
    '''Base class of all Glyph errors.'''


class FormatError(GlyphError, ValueError):
    '''Missing or malformed encode input.'''


class SizeLimitError(GlyphError, ValueError):
    '''Encode input exceeds a protocol size limit.'''

    def __init__(self, message, *, limit=None, size=None):
        super().__init__(message)
        self.limit = limit
        self.size = size


class StructuralDecodeError(GlyphError):
    '''Envelope bytes are truncated or exceed a decode bound.

    Internal to the decoder; never seen by callers.
    '''
