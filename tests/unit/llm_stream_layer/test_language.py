"""
Unit Tests for Language Detection
"""

import pytest

from evassist.utils.language import detect_language, resolve_language


@pytest.mark.unit
class TestDetectLanguage:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("העמדה לא עובדת", "he"),
            ("المحطة لا تعمل", "ar"),
            ("Станция не работает", "ru"),
            ("The station is not working", "en"),
        ],
    )
    def test_detects_script(self, text, expected):
        assert detect_language(text) == expected

    def test_hebrew_wins_over_latin_in_mixed_text(self):
        assert detect_language("עמדה 35 station") == "he"

    @pytest.mark.parametrize("text", ["", "35-1", "🙂", None])
    def test_no_script_returns_none(self, text):
        assert detect_language(text) is None


@pytest.mark.unit
class TestResolveLanguage:
    def test_explicit_tag_wins(self):
        assert resolve_language("EN", "העמדה לא עובדת", "he") == "en"

    def test_detection_when_no_tag(self):
        assert resolve_language(None, "Станция", "he") == "ru"

    def test_default_when_nothing_detected(self):
        assert resolve_language(None, "35", "he") == "he"
