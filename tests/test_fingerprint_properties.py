"""
Property-based tests for record fingerprinting.

Uses Hypothesis for property-based testing to verify correctness properties
defined in the design document.
"""

import hashlib

from hypothesis import given, settings
from hypothesis import strategies as st

from listing_monitor.fingerprint import FINGERPRINT_LENGTH, fingerprint, fingerprint_text
from listing_monitor.models import Record


@st.composite
def record_strategy(draw) -> Record:
    """Generate listing records with realistic names and prices."""
    return Record(
        name=draw(st.text(min_size=3, max_size=60)),
        price=draw(st.integers(min_value=0, max_value=10_000_000)),
    )


class TestFingerprintShapeProperty:
    """
    Property-based tests for fingerprint shape.

    **Feature: listing-monitor, Property 1: Fingerprints are short lowercase hex digests**
    """

    @given(record=record_strategy())
    @settings(max_examples=100)
    def test_fingerprint_is_eight_hex_characters(self, record: Record) -> None:
        """
        Property 1: Fingerprints are short lowercase hex digests.

        *For any* record, the fingerprint SHALL be exactly 8 lowercase hex
        characters.
        """
        value = fingerprint(record)

        assert len(value) == FINGERPRINT_LENGTH
        assert all(c in "0123456789abcdef" for c in value)

    @given(record=record_strategy())
    @settings(max_examples=100)
    def test_fingerprint_is_md5_prefix_of_name_and_price(self, record: Record) -> None:
        """
        Property 1b: The fingerprint is the MD5 prefix of "{name}_{price}".
        """
        expected = hashlib.md5(f"{record.name}_{record.price}".encode("utf-8")).hexdigest()[:8]

        assert fingerprint(record) == expected
        assert fingerprint(record) == fingerprint_text(f"{record.name}_{record.price}")


class TestFingerprintDeterminismProperty:
    """
    Property-based tests for fingerprint determinism.

    **Feature: listing-monitor, Property 2: Equal records have equal fingerprints**
    """

    @given(record=record_strategy())
    @settings(max_examples=100)
    def test_equal_records_share_fingerprint(self, record: Record) -> None:
        """
        Property 2: Equal records have equal fingerprints.

        *For any* record, a copy with the same name and price SHALL produce
        the same fingerprint.
        """
        copy = Record(name=record.name, price=record.price)

        assert fingerprint(copy) == fingerprint(record)

    def test_price_is_part_of_fingerprint(self) -> None:
        """A price change on the same item is a different listing."""
        assert fingerprint(Record("Canon EOS R5", 200000)) != fingerprint(
            Record("Canon EOS R5", 198000)
        )

    def test_default_price_is_zero(self) -> None:
        """A record without a parsed price fingerprints as price 0."""
        assert fingerprint(Record("Nikon Z6")) == fingerprint_text("Nikon Z6_0")
