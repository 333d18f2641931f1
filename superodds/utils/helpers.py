"""
Small value helpers shared by source adapters.

The fingerprint here is what the dedup registry keys on, so it must stay
stable for identical (home, away, odd, promotion) tuples.
"""

import base64
import re
from typing import Any, Mapping, Union

# "Team A x Team B", "Team A vs Team B", "Team A - Team B", "Team A @ Team B"
_TEAM_PATTERNS = [
    re.compile(r"(.+?)\s+x\s+(.+)", re.IGNORECASE),
    re.compile(r"(.+?)\s+vs\.?\s+(.+)", re.IGNORECASE),
    re.compile(r"(.+?)\s+-\s+(.+)"),
    re.compile(r"(.+?)\s+@\s+(.+)"),
]

_NUMERIC_CHARS = re.compile(r"[^\d.,]")


def _format_number(value: Any) -> str:
    """Render numbers without a trailing '.0' so 3 and 3.0 fingerprint alike."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def generate_odd_id(
    home_team: str,
    away_team: str,
    odd_value: Union[float, str],
    promotion_type: str,
) -> str:
    """
    Derive a listing fingerprint from its identifying fields.

    Two listings with the same teams, odd and promotion type share an id even
    if they differ elsewhere (line, time window). That collision is accepted.
    """
    base = f"{home_team}-{away_team}-{_format_number(odd_value)}-{promotion_type}"
    return base64.b64encode(base.encode("utf-8")).decode("ascii")[:16]


def parse_decimal(value: Any) -> float:
    """
    Parse a price or stake that may arrive as text ("R$ 1.000,50", "2,50").

    When both separators appear the last one is the decimal point. A
    separator repeated more than once only groups thousands. A single
    separator on its own is read as the decimal point.

    Returns 0.0 when nothing numeric can be recovered.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)

    cleaned = _NUMERIC_CHARS.sub("", str(value))
    if "," in cleaned and "." in cleaned:
        decimal = "," if cleaned.rfind(",") > cleaned.rfind(".") else "."
        grouping = "." if decimal == "," else ","
        cleaned = cleaned.replace(grouping, "")
    else:
        for separator in (",", "."):
            if cleaned.count(separator) > 1:
                cleaned = cleaned.replace(separator, "")
        decimal = ","
    normalized = cleaned.replace(decimal, ".")
    try:
        return float(normalized)
    except ValueError:
        return 0.0


def extract_teams_from_title(title: str) -> tuple[str, str]:
    """Split a fixture title into (home, away), falling back to halving the words."""
    for pattern in _TEAM_PATTERNS:
        match = pattern.match(title)
        if match:
            return match.group(1).strip(), match.group(2).strip()

    words = title.split()
    middle = (len(words) + 1) // 2
    return " ".join(words[:middle]), " ".join(words[middle:])


def is_valid_super_odd(listing: Mapping[str, Any]) -> bool:
    """Check the minimum fields a listing needs before it becomes a SuperOdd."""
    odd_value = listing.get("odd_value") or 0
    return bool(
        listing.get("home_team")
        and listing.get("away_team")
        and odd_value > 1
        and listing.get("url")
    )


def sanitize_text(text: str) -> str:
    """Collapse whitespace in scraped text."""
    return re.sub(r"\s+", " ", text or "").strip()
