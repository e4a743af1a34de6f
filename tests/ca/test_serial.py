"""Tests for serial number allocation (twocca.ca.serial)."""

from __future__ import annotations

from twocca.ca.serial import (
    PRODUCT_TAG,
    SERIAL_SIZE,
    SerialAllocator,
    has_product_tag,
    serial_to_hex,
)


class TestSerialAllocator:
    def test_thousand_serials_carry_the_tag(self):
        allocator = SerialAllocator()
        for _ in range(1000):
            serial = allocator.allocate()
            assert serial > 0
            assert serial.bit_length() <= SERIAL_SIZE * 8
            assert serial.to_bytes(SERIAL_SIZE, "big")[:2] == PRODUCT_TAG

    def test_tag_overwrites_leading_random_bytes(self):
        allocator = SerialAllocator(token_bytes=lambda n: b"\xff" * n)
        serial = allocator.allocate()
        assert serial_to_hex(serial) == "2cca" + "ff" * (SERIAL_SIZE - 2)

    def test_serials_differ(self):
        allocator = SerialAllocator()
        serials = {allocator.allocate() for _ in range(200)}
        assert len(serials) == 200

    def test_uses_sixteen_random_bytes(self):
        requested = []

        def _token_bytes(n):
            requested.append(n)
            return bytes(n)

        SerialAllocator(token_bytes=_token_bytes).allocate()
        assert requested == [SERIAL_SIZE]


class TestHelpers:
    def test_serial_to_hex_is_lowercase_without_prefix(self):
        assert serial_to_hex(0x2CCA0001) == "2cca0001"

    def test_has_product_tag(self):
        tagged = int.from_bytes(PRODUCT_TAG + bytes(SERIAL_SIZE - 2), "big")
        assert has_product_tag(tagged) is True

    def test_untagged_serials(self):
        assert has_product_tag(1) is False
        assert has_product_tag(0) is False
        assert has_product_tag(-5) is False
        assert has_product_tag(1 << (SERIAL_SIZE * 8)) is False
