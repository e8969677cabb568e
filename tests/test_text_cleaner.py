"""Unit tests for TextCleaner."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import pytest
from errors import ConfigurationError
from models.embedding_config import CleanerStrategy
from services.text_cleaner import TextCleaner, clean_text


SAMPLES = [
    "  Chapter  One\n\nIt was a   bright cold day\tin April.  ",
    "The infor- mation was hid-\nden in the\fnext page.",
    "Café “quotes” and non-breaking spaces",
    "OCR:text,fused.together!and wo- rds split",
    "Dashes - stand - alone -- and trailing-",
    "",
    "   \n\t  ",
]


class TestTextCleaner:
    """Test suite for TextCleaner."""

    def setup_method(self):
        self.cleaner = TextCleaner()

    def test_simple_collapses_whitespace(self):
        """Test simple strategy collapses whitespace runs and trims."""
        result = self.cleaner.clean("  Hello\n\n  world\t again  ", "simple")
        assert result == "Hello world again"

    def test_simple_keeps_non_ascii(self):
        """Test simple strategy does not touch characters."""
        assert self.cleaner.clean("Café  au lait", CleanerStrategy.SIMPLE) == "Café au lait"

    def test_advanced_joins_line_break_hyphenation(self):
        """Test advanced strategy joins words split across lines."""
        result = self.cleaner.clean("The infor-\nmation was hid- den", "advanced")
        assert result == "The information was hidden"

    def test_advanced_drops_non_ascii_and_form_feeds(self):
        """Test advanced strategy replaces non-ASCII and form feeds with spaces."""
        result = self.cleaner.clean("Café\fpage two", "advanced")
        assert result == "Caf page two"

    def test_ocr_joins_mid_word_hyphen(self):
        """Test OCR strategy joins 'wo- rd' fragments."""
        assert self.cleaner.clean("wo- rds split", "ocr-optimized") == "words split"

    def test_ocr_separates_fused_punctuation(self):
        """Test OCR strategy adds a space after punctuation fused to the next word."""
        result = self.cleaner.clean("end.Next,word!Again", "ocr-optimized")
        assert result == "end. Next, word! Again"

    def test_ocr_keeps_only_printable_ascii(self):
        """Test OCR strategy turns non-printable and non-ASCII characters into spaces."""
        result = self.cleaner.clean("line\none\x07twoéthree", "ocr-optimized")
        assert result == "line one two three"

    @pytest.mark.parametrize("strategy", list(CleanerStrategy))
    @pytest.mark.parametrize("text", SAMPLES)
    def test_cleaning_is_idempotent(self, strategy, text):
        """Test cleaning cleaned text changes nothing."""
        once = self.cleaner.clean(text, strategy)
        assert self.cleaner.clean(once, strategy) == once

    @pytest.mark.parametrize("strategy", list(CleanerStrategy))
    def test_empty_text(self, strategy):
        """Test empty and whitespace-only input clean to an empty string."""
        assert self.cleaner.clean("", strategy) == ""
        assert self.cleaner.clean("  \n ", strategy) == ""

    def test_unknown_strategy_raises(self):
        """Test unknown strategy names are rejected."""
        with pytest.raises(ConfigurationError, match="Unknown cleaner strategy"):
            self.cleaner.clean("text", "aggressive")

    def test_module_shortcut(self):
        """Test clean_text matches TextCleaner.clean."""
        assert clean_text(" a  b ", "simple") == "a b"
