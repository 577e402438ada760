"""Locate the bundle header by scanning for the bundle signature."""

from .errors import HeaderOutOfBounds, SignatureNotFound
from .locator import MarkerFieldLocator


# region Signature Definition

# 32 bytes: SHA-256 of ".net core bundle". The host writer places the 8-byte
# header-offset field right before these bytes.
# The first byte is really 0x8B. It is stored as 0x00 and patched below so
# the complete signature never appears a second time in a file that embeds
# this module's bytes.
_SIGNATURE = bytearray([
    0x00, 0x12, 0x02, 0xB9, 0x6A, 0x61, 0x20, 0x38, 0x72, 0x7B, 0x93, 0x02, 0x14, 0xD7, 0xA0, 0x32,
    0x13, 0xF5, 0xB9, 0xE6, 0xEF, 0xAE, 0x33, 0x18, 0xEE, 0x3B, 0x2D, 0xCE, 0x24, 0xB3, 0x6A, 0xAE,
])
_SIGNATURE[0] = 0x8B
BUNDLE_SIGNATURE = bytes(_SIGNATURE)

# Size of the header-offset field preceding the signature.
HEADER_OFFSET_FIELD_SIZE = 8

# endregion Signature Definition


# region Signature Scanner

def search_signature(source, signature=BUNDLE_SIGNATURE):
    """Return the index of the first occurrence of ``signature`` or -1.

    Restart rule: on a mismatch after ``match_len`` matched bytes the
    candidate start moves forward by ``max(match_len, 1)``. That is only
    correct because BUNDLE_SIGNATURE has no prefix repeating inside it (no
    later byte equals its first byte), so no occurrence can start inside a
    partial match. Re-check that property before changing the signature.

    While nothing is matched the next candidate is found with the mapping's
    find() on the first byte instead of advancing one byte at a time.
    """
    length = len(source)
    sig_len = len(signature)
    first = signature[:1]
    match_start = 0
    match_len = 0

    while match_start + match_len < length:
        if match_len == 0:
            match_start = source.find(first, match_start)
            if match_start < 0:
                return -1
        if source.byte_at(match_start + match_len) == signature[match_len]:
            if match_len == sig_len - 1:
                return match_start
            match_len += 1
        else:
            match_start += max(match_len, 1)
            match_len = 0

    return -1

# endregion Signature Scanner


class SignatureScanStrategy(MarkerFieldLocator):
    """Scans the whole app host for BUNDLE_SIGNATURE."""

    name = "signature"

    def find_header_field(self, source):
        index = search_signature(source)
        if index < 0:
            raise SignatureNotFound(len(source))
        self.logger.diag(f"{self.name}: signature at 0x{index:X}")
        field_offset = index - HEADER_OFFSET_FIELD_SIZE
        if field_offset < 0:
            raise HeaderOutOfBounds(field_offset, len(source))
        return field_offset
