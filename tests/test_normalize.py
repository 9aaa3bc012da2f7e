"""
Tests for date and time normalisation in courtbook/utils/normalize.py.
"""

from datetime import date

import pytest

from courtbook.utils.normalize import normalize_date, normalize_time, slot_matches

# A Sunday
TODAY = date(2025, 6, 15)


@pytest.fixture(autouse=True)
def no_operating_year(monkeypatch):
    monkeypatch.setattr("courtbook.utils.normalize.settings.operating_year", None)


class TestNormalizeDate:
    """Tests for normalize_date."""

    def test_empty_is_tomorrow(self) -> None:
        assert normalize_date("", TODAY) == "2025-06-16"
        assert normalize_date(None, TODAY) == "2025-06-16"

    def test_relative_words(self) -> None:
        assert normalize_date("today", TODAY) == "2025-06-15"
        assert normalize_date("Tomorrow", TODAY) == "2025-06-16"

    def test_weekday_is_next_occurrence(self) -> None:
        """A weekday name means its next occurrence, never today."""
        assert normalize_date("monday", TODAY) == "2025-06-16"
        assert normalize_date("Saturday", TODAY) == "2025-06-21"
        assert normalize_date("sunday", TODAY) == "2025-06-22"

    @pytest.mark.parametrize(
        "value",
        ["2025-06-20", "6/20/2025", "06/20", "June 20", "Jun 20", "June 20 2025", "June 20, 2025"],
    )
    def test_explicit_forms(self, value: str) -> None:
        assert normalize_date(value, TODAY) == "2025-06-20"

    def test_past_year_moves_to_operating_year(self) -> None:
        """A stale year (e.g. from a model's training cutoff) is corrected."""
        assert normalize_date("2023-07-04", TODAY) == "2025-07-04"

    def test_configured_operating_year(self, monkeypatch) -> None:
        monkeypatch.setattr("courtbook.utils.normalize.settings.operating_year", 2026)

        assert normalize_date("2025-07-04", TODAY) == "2026-07-04"

    def test_leap_day_outside_leap_year(self) -> None:
        assert normalize_date("2024-02-29", TODAY) == "2025-02-28"
        assert normalize_date("2/29", TODAY) == "2025-02-28"

    @pytest.mark.parametrize(
        "value", ["", "today", "friday", "2023-07-04", "7/4", "July 4", "2024-02-29"]
    )
    def test_idempotent(self, value: str) -> None:
        once = normalize_date(value, TODAY)

        assert normalize_date(once, TODAY) == once
        assert int(once[:4]) >= TODAY.year

    @pytest.mark.parametrize("value", ["someday", "2025-13-01", "32/01"])
    def test_invalid(self, value: str) -> None:
        with pytest.raises(ValueError):
            normalize_date(value, TODAY)


class TestNormalizeTime:
    """Tests for normalize_time."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("3pm", "3:00 PM"),
            ("3PM", "3:00 PM"),
            ("3 pm", "3:00 PM"),
            ("3:30pm", "3:30 PM"),
            ("03:30 PM", "3:30 PM"),
            ("3:30 p.m.", "3:30 PM"),
            ("9am", "9:00 AM"),
            ("12pm", "12:00 PM"),
            ("12:15 am", "12:15 AM"),
            ("15:30", "3:30 PM"),
            ("09:00", "9:00 AM"),
            ("00:30", "12:30 AM"),
            ("noon", "12:00 PM"),
            ("Midnight", "12:00 AM"),
        ],
    )
    def test_canonical_form(self, value: str, expected: str) -> None:
        assert normalize_time(value) == expected

    @pytest.mark.parametrize("value", ["3pm", "3:30 p.m.", "15:30", "noon", "12:15 am"])
    def test_idempotent(self, value: str) -> None:
        once = normalize_time(value)

        assert normalize_time(once) == once

    @pytest.mark.parametrize("value", ["", "3", "13pm", "3:75pm", "25:00", "later"])
    def test_invalid(self, value: str) -> None:
        with pytest.raises(ValueError):
            normalize_time(value)


class TestSlotMatches:
    """Tests for slot_matches."""

    def test_substring_match(self) -> None:
        slots = ["9:00 AM - 10:00 AM", "3:00 PM - 4:00 PM"]

        assert slot_matches("3:00 PM", slots)
        assert not slot_matches("5:00 PM", slots)

    def test_case_sensitive(self) -> None:
        assert not slot_matches("3:00 PM", ["3:00 pm"])

    def test_empty_list(self) -> None:
        assert not slot_matches("3:00 PM", [])
