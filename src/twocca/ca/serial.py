"""Serial number allocation.

Serials are 16 bytes drawn from :mod:`secrets` whose first two bytes
are overwritten with the ``2c ca`` product tag, leaving 112 random bits.
Allocated serials are not checked against previously issued ones; the
remaining entropy is what keeps them apart.
"""

from __future__ import annotations

import secrets

SERIAL_SIZE = 16
PRODUCT_TAG = b"\x2c\xca"


class SerialAllocator:
    """Produce tagged 128-bit certificate serial numbers."""

    def __init__(self, token_bytes=secrets.token_bytes) -> None:
        self._token_bytes = token_bytes

    def allocate(self) -> int:
        """Return a new positive serial as an integer.

        The tag's high bit is clear, so the DER INTEGER stays positive
        and within the 20-octet limit of RFC 5280 §4.1.2.2.
        """
        raw = self._token_bytes(SERIAL_SIZE)
        tagged = PRODUCT_TAG + raw[len(PRODUCT_TAG) : SERIAL_SIZE]
        return int.from_bytes(tagged, "big")


def serial_to_hex(serial_number: int) -> str:
    """Format *serial_number* the way it is logged and listed."""
    return format(serial_number, "x")


def has_product_tag(serial_number: int) -> bool:
    """Return True when *serial_number* carries the product tag."""
    if serial_number <= 0 or serial_number.bit_length() > SERIAL_SIZE * 8:
        return False
    return serial_number.to_bytes(SERIAL_SIZE, "big")[: len(PRODUCT_TAG)] == PRODUCT_TAG
