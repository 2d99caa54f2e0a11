"""Tests for keyword matching helpers."""

from app.models.messaging.enums import MatchType
from app.services.messaging.keyword_matcher import ensure_keywords, match_keywords, normalize


def test_contains_ignores_case_and_surrounding_whitespace():
    assert match_keywords("CONTAINS", " Hello World ", ["hello"]) == ["hello"]


def test_equals_matches_whole_text_only():
    assert match_keywords("EQUALS", "Hello", ["hello"]) == ["hello"]
    assert match_keywords("EQUALS", "Hello World", ["hello"]) == []


def test_returns_original_keywords_in_rule_order():
    hits = match_keywords("CONTAINS", "price and PROMO please", ["Promo", "missing", " Price "])
    assert hits == ["Promo", " Price "]


def test_blank_keywords_are_skipped():
    assert match_keywords("CONTAINS", "anything", ["", "   ", None]) == []


def test_unknown_match_type_behaves_as_contains():
    assert match_keywords("FUZZY", "order status", ["status"]) == ["status"]
    assert match_keywords(None, "order status", ["status"]) == ["status"]


def test_accepts_enum_match_type():
    assert match_keywords(MatchType.equals, "  STOP ", ["stop"]) == ["stop"]


def test_thai_keyword_contains():
    assert match_keywords("CONTAINS", "สอบถามราคาครับ", ["ราคา", "โปร"]) == ["ราคา"]


def test_empty_text_matches_nothing_in_contains_mode():
    assert match_keywords("CONTAINS", "", ["hello"]) == []
    assert match_keywords("CONTAINS", None, ["hello"]) == []


def test_matching_is_deterministic():
    args = ("CONTAINS", "Need a refund for my order", ["refund", "order", "cancel"])
    assert match_keywords(*args) == match_keywords(*args) == ["refund", "order"]


def test_normalize():
    assert normalize("  MiXeD ") == "mixed"
    assert normalize(None) == ""


class TestEnsureKeywords:
    def test_list_input_is_trimmed_and_filtered(self):
        assert ensure_keywords([" a ", "", "b", None, "  "]) == ["a", "b"]

    def test_comma_string_input(self):
        assert ensure_keywords("price, ราคา ,,promo") == ["price", "ราคา", "promo"]

    def test_duplicates_are_kept(self):
        assert ensure_keywords(["a", "a"]) == ["a", "a"]

    def test_other_types_yield_empty_list(self):
        assert ensure_keywords(None) == []
        assert ensure_keywords(42) == []
