"""Pure validation helpers behind listing submission and edits."""
from __future__ import annotations

import pytest

from opslink.core.errors import ValidationError
from opslink.services.listings import (
    MAX_TAGS,
    filter_changes,
    normalize_tags,
    parse_member_count,
    parse_rating,
    validate_logo,
)


class TestNormalizeTags:
    def test_dedupes_case_insensitively_and_caps(self) -> None:
        tags = ["Gaming", "gaming", "RP", "rp", "Trade", "Trade", "Chill", "New", "Extra"]
        assert normalize_tags(tags) == ["gaming", "rp", "trade", "chill", "new"]

    def test_is_idempotent(self) -> None:
        once = normalize_tags(["  Anime ", "MANGA", "x", "anime", "a" * 25, "Cosplay"])
        assert once == ["anime", "manga", "cosplay"]
        assert normalize_tags(once) == once

    @pytest.mark.parametrize("tags", [None, [], ["x"], [1, None, {"tag": "rp"}]])
    def test_drops_unusable_values(self, tags) -> None:
        assert normalize_tags(tags) == []

    def test_never_exceeds_limit(self) -> None:
        assert len(normalize_tags([f"tag{n}" for n in range(20)])) == MAX_TAGS


class TestValidateLogo:
    @pytest.mark.parametrize(
        "logo",
        [
            "https://cdn.example.com/logo.png",
            "http://cdn.example.com/a/b/logo.JPEG",
            "https://cdn.example.com/logo.webp?size=256",
            "  https://cdn.example.com/logo.svg  ",
        ],
    )
    def test_accepts_direct_image_urls(self, logo: str) -> None:
        assert validate_logo(logo) == logo.strip()

    @pytest.mark.parametrize(
        "logo",
        [None, "", "   ", "https://cdn.example.com/logo", "ftp://cdn.example.com/logo.png", "logo.png"],
    )
    def test_rejects_everything_else(self, logo) -> None:
        with pytest.raises(ValidationError):
            validate_logo(logo)


def test_filter_changes_keeps_editable_non_empty_fields() -> None:
    proposed = {
        "name": "Renamed",
        "description": "New text",
        "website": "",
        "language": None,
        "nsfw": False,
        "members": 0,
        "tags": [],
        "status": "approved",
    }
    assert filter_changes(proposed) == {"description": "New text", "nsfw": False, "members": 0}


class TestParseMemberCount:
    @pytest.mark.parametrize("value, expected", [(0, 0), (4521, 4521), ("17", 17), (12.0, 12)])
    def test_valid(self, value, expected) -> None:
        assert parse_member_count(value) == expected

    @pytest.mark.parametrize("value", [None, True, -1, 1.5, "many", "-3", [], 10_000_001])
    def test_invalid(self, value) -> None:
        with pytest.raises(ValidationError):
            parse_member_count(value)


class TestParseRating:
    @pytest.mark.parametrize("value", [1, 3, 5])
    def test_valid(self, value: int) -> None:
        assert parse_rating(value) == value

    @pytest.mark.parametrize("value", [0, 6, 4.5, "5", None, True])
    def test_invalid(self, value) -> None:
        with pytest.raises(ValidationError):
            parse_rating(value)
