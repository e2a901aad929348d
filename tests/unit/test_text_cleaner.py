"""Unit tests for TextCleaner: normalization, page furniture and OCR repair."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from src.utils.text_cleaner import CleanOptions, TextCleaner


@pytest.fixture
def cleaner() -> TextCleaner:
    return TextCleaner()


TECHNICAL_PROSE = (
    "Verify the download by running md5sum on the archive before you install it. "
    "The b2b exporter writes utf8 files and keeps the mp3s in a separate folder."
)


# ---------------------------------------------------------------------------
# Basic normalization
# ---------------------------------------------------------------------------


class TestBasicCleaning:
    def test_empty_input_returns_empty_string(self, cleaner: TextCleaner) -> None:
        assert cleaner.clean("") == ""

    def test_non_string_input_returns_empty_string(self, cleaner: TextCleaner) -> None:
        assert cleaner.clean(None) == ""  # type: ignore[arg-type]

    def test_whitespace_collapses_to_single_spaces(self, cleaner: TextCleaner) -> None:
        assert cleaner.clean("Hello   world\n\n\n\nfoo\tbar") == "Hello world foo bar."

    def test_control_and_zero_width_characters_removed(self, cleaner: TextCleaner) -> None:
        assert cleaner.clean("Hel\x00lo\u200b wor\x07ld") == "Hello world."

    def test_duplicate_long_lines_removed(self, cleaner: TextCleaner) -> None:
        text = "This is a repeated line\nThis is a repeated line\nshort\nshort"
        assert cleaner.clean(text) == "This is a repeated line short short."

    def test_duplicate_detection_ignores_case(self, cleaner: TextCleaner) -> None:
        text = "Quarterly revenue summary\nQUARTERLY REVENUE SUMMARY\nFigures follow"
        assert cleaner.clean(text) == "Quarterly revenue summary Figures follow."


# ---------------------------------------------------------------------------
# Standard and optional phases
# ---------------------------------------------------------------------------


class TestCleanOptions:
    def test_page_furniture_removed_by_default(self, cleaner: TextCleaner) -> None:
        text = "Intro line here\n12\nPage 3 of 10\nBody text continues\nCopyright 2024 Acme"
        assert cleaner.clean(text) == "Intro line here Body text continues."

    def test_page_numbers_kept_when_disabled(self, cleaner: TextCleaner) -> None:
        result = cleaner.clean(
            "Intro line here\n12\nBody text", CleanOptions(remove_page_numbers=False)
        )
        assert "12" in result

    def test_sentence_ending_added_by_default(self, cleaner: TextCleaner) -> None:
        assert cleaner.clean("No punctuation here") == "No punctuation here."

    def test_existing_sentence_ending_untouched(self, cleaner: TextCleaner) -> None:
        assert cleaner.clean("Already done!") == "Already done!"

    def test_sentence_ending_can_be_disabled(self, cleaner: TextCleaner) -> None:
        result = cleaner.clean("Left open", CleanOptions(ensure_sentence_endings=False))
        assert result == "Left open"

    def test_urls_removed(self, cleaner: TextCleaner) -> None:
        result = cleaner.clean(
            "See https://example.com/x for details", CleanOptions(remove_urls=True)
        )
        assert result == "See for details."

    def test_emails_removed(self, cleaner: TextCleaner) -> None:
        result = cleaner.clean("Contact me at a@b.com now", CleanOptions(remove_emails=True))
        assert result == "Contact me at now."


# ---------------------------------------------------------------------------
# OCR detection and repair
# ---------------------------------------------------------------------------


class TestOCRDetection:
    def test_known_misread_detected(self) -> None:
        text = "The univer5ity has many students enrolled in classes this year."
        assert TextCleaner.detect_ocr_issues(text) is True

    def test_dense_glyph_substitutions_detected(self) -> None:
        text = "Ana1ysis of the c0mputer and the pr0cessor in the 1aboratory was c0mplete."
        assert TextCleaner.detect_ocr_issues(text) is True

    def test_spaced_out_text_detected(self) -> None:
        text = "T h i s   i s   s p a c e d   o u t   t e x t   f r o m   a   s c a n"
        assert TextCleaner.detect_ocr_issues(text) is True

    def test_ordinary_prose_not_flagged(self) -> None:
        text = "This is perfectly ordinary prose without any scanning artifacts at all."
        assert TextCleaner.detect_ocr_issues(text) is False

    def test_technical_tokens_not_flagged(self) -> None:
        assert TextCleaner.detect_ocr_issues(TECHNICAL_PROSE) is False

    def test_short_text_never_flagged(self) -> None:
        assert TextCleaner.detect_ocr_issues("univer5ity") is False


class TestOCRRepair:
    def test_known_misread_words_repaired(self, cleaner: TextCleaner) -> None:
        assert cleaner.repair_ocr("The univer5ity campus") == "The university campus"
        assert cleaner.repair_ocr("the dassroom was full") == "the classroom was full"

    def test_mixed_letter_digit_tokens_preserved(self, cleaner: TextCleaner) -> None:
        assert cleaner.repair_ocr(TECHNICAL_PROSE) == TECHNICAL_PROSE

    def test_letter_read_as_digit_in_number_repaired(self, cleaner: TextCleaner) -> None:
        assert cleaner.repair_ocr("invoice O1234 due") == "invoice 01234 due"

    def test_single_letter_before_digit_kept(self, cleaner: TextCleaner) -> None:
        assert cleaner.repair_ocr("stored in S3 overnight") == "stored in S3 overnight"

    def test_spaced_email_rejoined(self, cleaner: TextCleaner) -> None:
        result = cleaner.repair_ocr("write to john @ example . com today")
        assert "john@example.com" in result

    def test_bare_phone_number_prefixed(self, cleaner: TextCleaner) -> None:
        assert "+91 9876543210" in cleaner.repair_ocr("call 9876543210 now")

    def test_repair_runs_when_forced(self, cleaner: TextCleaner) -> None:
        result = cleaner.clean("the dassroom", CleanOptions(fix_ocr=True))
        assert result == "the classroom."

    def test_clean_technical_prose_unchanged(self, cleaner: TextCleaner) -> None:
        assert cleaner.clean(TECHNICAL_PROSE) == TECHNICAL_PROSE


# ---------------------------------------------------------------------------
# Idempotence
# ---------------------------------------------------------------------------


class TestIdempotence:
    @pytest.mark.parametrize(
        "raw",
        [
            "The measure-\nment was repeated across several independent trials\n"
            "to confirm the effect was not an artifact of the set-\nup.",
            "Annual report summary\n3\nPage 3 of 10\nRevenue grew strongly this year\n"
            "Confidential\nCopyright 2024 Acme Corporation",
            "The univer5ity dassroom was full of 5tudents working on their "
            "re5earch projects today",
            "name: Alice. age: 30. city: Paris. tags: physics. chemistry. "
            "notes: awarded two Nobel prizes",
            "Installation Guide\n\nRun the installer and follow the prompts.\n\n"
            "step one\nstep two\nstep three",
            TECHNICAL_PROSE,
        ],
        ids=["hyphenated-breaks", "page-furniture", "ocr-misreads", "json-derived",
             "markdown-derived", "technical-prose"],
    )
    def test_second_pass_changes_nothing(self, cleaner: TextCleaner, raw: str) -> None:
        once = cleaner.clean(raw)
        assert cleaner.clean(once) == once


class TestFailureFallback:
    def test_internal_error_returns_input_unchanged(self, cleaner: TextCleaner) -> None:
        with patch.object(
            TextCleaner, "_normalize_whitespace", side_effect=RuntimeError("boom")
        ):
            assert cleaner.clean("raw   text") == "raw   text"
