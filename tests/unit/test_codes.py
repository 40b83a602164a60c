# tests/unit/test_codes.py
# Join codes, locators and timestamp encoding

import pytest
from datetime import datetime, timedelta, timezone

from listsync.errors import ValidationError
from listsync.utils.codes import (
    chat_subscription_id,
    generate_code,
    make_locator,
    normalize_code,
    parse_locator,
    zone_name_for,
)
from listsync.utils.timestamps import decode_timestamp, encode_timestamp


class TestCodes:

    def test_generated_code_is_numeric_with_requested_length(self):
        for length in (1, 6, 9):
            code = generate_code(length)
            assert len(code) == length
            assert code.isdigit()

    def test_default_code_length_is_six(self):
        assert len(generate_code()) == 6

    def test_normalize_strips_whitespace(self):
        assert normalize_code("  482913\n") == "482913"
        assert normalize_code("   ") == ""
        assert normalize_code(None) == ""

    def test_zone_and_subscription_names(self):
        assert zone_name_for("482913") == "lb-482913"
        assert chat_subscription_id("lb-482913") == "lb-chat-lb-482913"


class TestLocators:

    def test_locator_round_trip(self):
        locator = make_locator("lb-123456", "tok_en-1")
        assert locator == "listsync://share/lb-123456/tok_en-1"
        assert parse_locator(locator) == ("lb-123456", "tok_en-1")

    @pytest.mark.parametrize("bad", [
        "",
        "https://example.com/lb-1/tok",
        "listsync://share/lb-1",
        "listsync://share//tok",
        "listsync://share/lb-1/",
        "listsync://share/lb-1/tok/extra",
    ])
    def test_malformed_locators_are_rejected(self, bad):
        with pytest.raises(ValidationError):
            parse_locator(bad)


class TestTimestamps:

    def test_encoded_strings_sort_chronologically(self):
        base = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)
        stamps = [base + timedelta(microseconds=n) for n in (0, 1, 999_999, 1_000_000)]
        encoded = [encode_timestamp(s) for s in stamps]
        assert encoded == sorted(encoded)

    def test_naive_datetimes_are_treated_as_utc(self):
        naive = datetime(2024, 5, 1, 12, 0, 0)
        assert encode_timestamp(naive) == "2024-05-01T12:00:00.000000+00:00"

    def test_other_offsets_are_converted_to_utc(self):
        plus_two = timezone(timedelta(hours=2))
        value = datetime(2024, 5, 1, 14, 0, 0, tzinfo=plus_two)
        assert encode_timestamp(value) == "2024-05-01T12:00:00.000000+00:00"

    def test_decode(self):
        decoded = decode_timestamp("2024-05-01T12:00:00.000001+00:00")
        assert decoded == datetime(2024, 5, 1, 12, 0, 0, 1, tzinfo=timezone.utc)
        assert decode_timestamp("not a date") is None
        assert decode_timestamp(None) is None
        assert decode_timestamp(42) is None
