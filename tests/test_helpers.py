"""Tests for fingerprinting and value parsing helpers."""

import pytest

from superodds.utils.helpers import (
    extract_teams_from_title,
    generate_odd_id,
    is_valid_super_odd,
    parse_decimal,
    sanitize_text,
)


class TestGenerateOddId:
    """Tests for the listing fingerprint."""

    def test_stable_and_short(self):
        first = generate_odd_id("Flamengo", "Palmeiras", 2.5, "Super Odd")
        second = generate_odd_id("Flamengo", "Palmeiras", 2.5, "Super Odd")

        assert first == second
        assert len(first) == 16

    def test_whole_numbers_fingerprint_alike(self):
        assert generate_odd_id("A", "B", 3, "Boost") == generate_odd_id("A", "B", 3.0, "Boost")

    def test_distinct_fields_distinct_ids(self):
        base = generate_odd_id("Flamengo", "Palmeiras", 2.5, "Super Odd")

        assert generate_odd_id("Flamengo", "Palmeiras", 2.6, "Super Odd") != base
        assert generate_odd_id("Flamengo", "Palmeiras", 2.5, "Turbo") != base
        assert generate_odd_id("Palmeiras", "Flamengo", 2.5, "Super Odd") != base


class TestParseDecimal:
    """Tests for parse_decimal."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("2,50", 2.5),
            ("R$ 50,00", 50.0),
            ("@ 3.10", 3.1),
            ("R$ 1.000,50", 1000.5),
            ("1,234.56", 1234.56),
            ("1.000.000", 1000000.0),
            (4, 4.0),
            (1.85, 1.85),
            ("", 0.0),
            ("n/a", 0.0),
            (None, 0.0),
        ],
    )
    def test_values(self, raw, expected):
        assert parse_decimal(raw) == expected


class TestExtractTeams:
    """Tests for extract_teams_from_title."""

    @pytest.mark.parametrize(
        "title,expected",
        [
            ("Flamengo x Palmeiras", ("Flamengo", "Palmeiras")),
            ("Real Madrid vs Barcelona", ("Real Madrid", "Barcelona")),
            ("Grêmio - Internacional", ("Grêmio", "Internacional")),
            ("Lakers @ Celtics", ("Lakers", "Celtics")),
            ("Santos Corinthians", ("Santos", "Corinthians")),
        ],
    )
    def test_patterns(self, title, expected):
        assert extract_teams_from_title(title) == expected


class TestValidity:
    """Tests for is_valid_super_odd and sanitize_text."""

    def test_requires_teams_odd_and_url(self):
        listing = {"home_team": "A", "away_team": "B", "odd_value": 2.0, "url": "https://x"}

        assert is_valid_super_odd(listing)
        assert not is_valid_super_odd({**listing, "odd_value": 1.0})
        assert not is_valid_super_odd({**listing, "away_team": ""})
        assert not is_valid_super_odd({**listing, "url": ""})

    def test_sanitize_collapses_whitespace(self):
        assert sanitize_text("  Super \n  Odd\t") == "Super Odd"
