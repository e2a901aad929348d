"""Text normalization and OCR repair for extracted document text.

Every extraction strategy funnels its output through :class:`TextCleaner`
before the text reaches the chunker.  The cleaning pipeline has a fixed
order:

1. strip control, null and zero-width characters
2. normalize whitespace (line endings, tabs, blank-line runs)
3. drop page furniture (lone page numbers, "Page N of M", copyright lines)
4. OCR repair, when requested or when :meth:`TextCleaner.detect_ocr_issues`
   fires: spacing, glyph confusions, known misread words, then
   email / phone / date formatting
5. optional removals (URLs, emails, non-whitelisted characters)
6. terminal punctuation
7. duplicate-line removal
8. final whitespace collapse

Digits inside mixed letter-digit tokens ("md5sum", "mp3s") are only
rewritten through the known-misread table, never by per-character rules.

Cleaning never raises.  Chunking tolerates noisy text far better than it
tolerates missing text, so on any internal error the original input is
returned unchanged.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import structlog

logger = structlog.get_logger(logger_name=__name__)


@dataclass(frozen=True)
class CleanOptions:
    """Toggles for the optional phases of :meth:`TextCleaner.clean`.

    Whitespace normalization, duplicate-line removal and the final collapse
    always run.  Page-furniture stripping and terminal punctuation belong to
    the standard pass and default to on; the removals and forced OCR repair
    default to off.
    """

    remove_page_numbers: bool = True
    ensure_sentence_endings: bool = True
    remove_urls: bool = False
    remove_emails: bool = False
    remove_special_chars: bool = False
    fix_ocr: bool = False


# ---------------------------------------------------------------------------
# Phase 1-3 patterns
# ---------------------------------------------------------------------------

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
_ZERO_WIDTH = re.compile(r"[\u200B-\u200D\uFEFF]")

_HORIZONTAL_RUN = re.compile(r"[ \t]+")
_BLANK_LINE = re.compile(r"\n[ \t]+\n")
_EXCESS_NEWLINES = re.compile(r"\n{3,}")

_PAGE_FURNITURE: list[re.Pattern[str]] = [
    re.compile(r"^[ \t]*\d+[ \t]*$", re.MULTILINE),
    re.compile(r"^[ \t]*Page\s+\d+\s+of\s+\d+[ \t]*$", re.MULTILINE | re.IGNORECASE),
    re.compile(r"^[ \t]*Confidential[ \t]*$", re.MULTILINE | re.IGNORECASE),
    re.compile(r"^[ \t]*Draft[ \t]*$", re.MULTILINE | re.IGNORECASE),
    re.compile(r"^[ \t]*©.*$", re.MULTILINE),
    re.compile(r"^[ \t]*Copyright.*$", re.MULTILINE | re.IGNORECASE),
    re.compile(r"^[ \t]*\d{1,2}/\d{1,2}/\d{4}[ \t]*$", re.MULTILINE),
]

# ---------------------------------------------------------------------------
# OCR repair tables
# ---------------------------------------------------------------------------

_LEADING_JUNK_RUN = re.compile(r"^[^A-Za-z0-9\s]{5,}")
_LEADING_JUNK = re.compile(r"^[^A-Za-z0-9]+")
_SPACED_OUT_RATIO = 0.6
_SPACED_OUT_MIN_CHARS = 20

_BOUNDARY_INSERTIONS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"([.!?])([A-Z])"), r"\1 \2"),
    (re.compile(r"([a-z])([A-Z])"), r"\1 \2"),
    (re.compile(r"(\d)([A-Za-z])"), r"\1 \2"),
    (re.compile(r"([A-Za-z])(\d)"), r"\1 \2"),
]

_SUFFIX_BOUNDARIES: list[re.Pattern[str]] = [
    re.compile(rf"([a-zA-Z])({suffix})([A-Z])")
    for suffix in ("ing", "ed", "ly", "tion", "ment", "ness", "ity", "al")
]

_PUNCTUATION_CLUSTER = re.compile(r"([.,!?;:])\1+")

# Letter-for-digit confusions only; a single letter glued to a number
# ("S3", "O2") is left alone.
_CHARACTER_FIXES: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"(?<![A-Za-z])O(?=\d{2,}\b)"), "0"),
    (re.compile(r"(?<![A-Za-z])S(?=\d{2,}\b)"), "5"),
    (re.compile(r"(?<![A-Za-z])[Il](?=\d{2,}\b)"), "1"),
    (re.compile(r"\|"), "I"),
    (re.compile(r"(?<=[a-z])@(?=[a-z])(?![a-z]*\.)"), "a"),
    (re.compile(r"\[rn\]"), "m"),
    (re.compile(r"vv"), "w"),
    (re.compile(r"fIom|fl-om", re.IGNORECASE), "from"),
    (re.compile("£"), "E"),
]

_WORD_FIXES: dict[str, str] = {
    "dassroom": "classroom",
    "tecknology": "technology",
    "technoiogy": "technology",
    "techno1ogy": "technology",
    "univer5ity": "university",
    "5tudent": "student",
    "5tudents": "students",
    "re5earch": "research",
    "5kills": "skills",
    "experi5e": "expertise",
    "5uccess": "success",
    "5ystem": "system",
    "etitive": "competitive",
    "jaalial": "Jagtial",
    "jpail": "Jagtial",
}

_WORD_FIX_PATTERN = re.compile(
    r"\b(" + "|".join(re.escape(word) for word in _WORD_FIXES) + r")\b",
    re.IGNORECASE,
)

_FORMAT_FIXES: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"(\w+)\s*@\s*(\w+)"), r"\1@\2"),
    (re.compile(r"(@[\w-]+)\s*\.\s*(com|org|edu|net|in|ac)\b"), r"\1.\2"),
    (re.compile(r"(?<!\+)\b91\s+(\d{10})\b"), r"+91 \1"),
    (re.compile(r"(?<!\+91 )\b(\d{10})\b"), r"+91 \1"),
    (re.compile(r"\b(\d{4})\s*[-_]\s*(\d{2})\s*[-_]\s*(\d{2})\b"), r"\1-\2-\3"),
    (re.compile(r"(\w)(?:\s+-\s*|\s*-\s+)(\w)"), r"\1-\2"),
    (re.compile(r"(\w)\s*'\s*(\w)"), r"\1'\2"),
]

_SPACED_PHONE = re.compile(r"\b\d(?:[ \t]\d){9}\b")

# ---------------------------------------------------------------------------
# OCR detection
# ---------------------------------------------------------------------------

_DETECTION_SAMPLE = 500
_DETECTION_MIN_LENGTH = 50
_DETECTION_SPACE_RATIO = 0.4

_KNOWN_MISREAD = re.compile(
    r"\b(?:"
    + "|".join(re.escape(word) for word in _WORD_FIXES)
    + r"|fl[.\-]om)\b",
    re.IGNORECASE,
)

# A 0/1/5 glyph standing in for a letter ("c0mputer", "1aboratory").  One
# such token proves nothing ("md5sum", "sha1sum"); scanned pages show them
# across many words.
_GLYPH_TOKEN = re.compile(r"\b[A-Za-z]*[015][A-Za-z]+\b")
_GLYPH_TOKEN_MIN_LETTERS = 4
_GLYPH_MIN_TOKENS = 3
_GLYPH_MIN_DENSITY = 0.1
_WORD = re.compile(r"\b\w+\b")

# ---------------------------------------------------------------------------
# Phase 5-8 patterns
# ---------------------------------------------------------------------------

_URL = re.compile(r"https?://\S+")
_EMAIL = re.compile(r"\S+@\S+\.\S+")
_NON_WHITELISTED = re.compile(r"[^\w\s.,!?;:'\"()\[\]{}@#$%&*+\-=<>/\\|~`]")
_ANY_WHITESPACE = re.compile(r"\s+")

_TERMINAL_PUNCTUATION = ".!?"
_MIN_DEDUP_LINE_LENGTH = 10


class TextCleaner:
    """Normalizes raw extracted text and repairs OCR corruption.

    Stateless; a single instance can be shared by every extractor.
    """

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def clean(self, text: str, options: CleanOptions | None = None) -> str:
        """Run the full cleaning pipeline over *text*.

        Parameters
        ----------
        text:
            Raw text from any extraction strategy.
        options:
            Optional phase toggles.  ``None`` means all defaults.

        Returns
        -------
        str
            Cleaned single-line text, ``""`` for empty or non-string input,
            or *text* unchanged if cleaning itself failed.
        """
        if not text or not isinstance(text, str):
            return ""

        opts = options or CleanOptions()
        try:
            cleaned = self._strip_control_characters(text)
            cleaned = self._normalize_whitespace(cleaned)
            if opts.remove_page_numbers:
                cleaned = self._strip_page_furniture(cleaned)

            if opts.fix_ocr or self.detect_ocr_issues(cleaned):
                cleaned = self.repair_ocr(cleaned)

            if opts.remove_urls:
                cleaned = _URL.sub("", cleaned)
            if opts.remove_emails:
                cleaned = _EMAIL.sub("", cleaned)
            if opts.remove_special_chars:
                cleaned = _NON_WHITELISTED.sub(" ", cleaned)

            if opts.ensure_sentence_endings:
                cleaned = self._ensure_sentence_ending(cleaned)
            cleaned = self._remove_duplicate_lines(cleaned)
            cleaned = _ANY_WHITESPACE.sub(" ", cleaned).strip()
        except Exception as exc:
            logger.error("text_clean_failed", error=str(exc), length=len(text))
            return text

        logger.debug("text_cleaned", before=len(text), after=len(cleaned))
        return cleaned

    @staticmethod
    def detect_ocr_issues(text: str) -> bool:
        """Return ``True`` if *text* looks like corrupted OCR output.

        Only the first 500 characters are inspected.  Text is flagged when
        whitespace outnumbers 40 % of the visible characters (the
        "e v e r y  l e t t e r" pattern), when a known misread word such
        as ``univer5ity`` or ``dassroom`` appears, or when digit-for-letter
        glyphs show up in at least three words and a tenth of the sample.
        """
        if not text or len(text) < _DETECTION_MIN_LENGTH:
            return False

        sample = text[:_DETECTION_SAMPLE]
        spaces = sum(1 for ch in sample if ch.isspace())
        visible = len(sample) - spaces
        if spaces > visible * _DETECTION_SPACE_RATIO:
            return True

        if _KNOWN_MISREAD.search(sample):
            return True

        glyph_tokens = [
            token
            for token in _GLYPH_TOKEN.findall(sample)
            if sum(ch.isalpha() for ch in token) >= _GLYPH_TOKEN_MIN_LETTERS
        ]
        words = len(_WORD.findall(sample))
        return (
            len(glyph_tokens) >= _GLYPH_MIN_TOKENS
            and len(glyph_tokens) >= words * _GLYPH_MIN_DENSITY
        )

    def repair_ocr(self, text: str) -> str:
        """Apply the OCR repair sub-pipeline to *text*."""
        repaired = self._fix_spacing(text)
        repaired = self._fix_characters(repaired)
        repaired = self._fix_words(repaired)
        return self._fix_formatting(repaired)

    # ------------------------------------------------------------------
    # Basic normalization
    # ------------------------------------------------------------------

    @staticmethod
    def _strip_control_characters(text: str) -> str:
        text = _CONTROL_CHARS.sub("", text)
        return _ZERO_WIDTH.sub("", text)

    @staticmethod
    def _normalize_whitespace(text: str) -> str:
        text = text.replace("\r\n", "\n").replace("\r", "\n")
        text = text.replace("\t", "    ")
        text = _HORIZONTAL_RUN.sub(" ", text)
        text = _BLANK_LINE.sub("\n\n", text)
        text = _EXCESS_NEWLINES.sub("\n\n", text)
        return text.strip()

    @staticmethod
    def _strip_page_furniture(text: str) -> str:
        for pattern in _PAGE_FURNITURE:
            text = pattern.sub("", text)
        return text

    # ------------------------------------------------------------------
    # OCR repair
    # ------------------------------------------------------------------

    @staticmethod
    def _fix_spacing(text: str) -> str:
        """Strip leading junk and rebuild word boundaries in spaced-out text."""
        text = _LEADING_JUNK_RUN.sub("", text)
        text = _LEADING_JUNK.sub("", text)

        spaces = sum(1 for ch in text if ch.isspace())
        visible = len(text) - spaces
        if spaces > visible * _SPACED_OUT_RATIO and visible > _SPACED_OUT_MIN_CHARS:
            text = _ANY_WHITESPACE.sub("", text)
            for pattern, replacement in _BOUNDARY_INSERTIONS:
                text = pattern.sub(replacement, text)
            for pattern in _SUFFIX_BOUNDARIES:
                text = pattern.sub(r"\1\2 \3", text)

        return _PUNCTUATION_CLUSTER.sub(r"\1", text)

    @staticmethod
    def _fix_characters(text: str) -> str:
        for pattern, replacement in _CHARACTER_FIXES:
            text = pattern.sub(replacement, text)
        return text

    @staticmethod
    def _fix_words(text: str) -> str:
        return _WORD_FIX_PATTERN.sub(
            lambda match: _WORD_FIXES[match.group(1).lower()],
            text,
        )

    @staticmethod
    def _fix_formatting(text: str) -> str:
        text = _SPACED_PHONE.sub(lambda match: _ANY_WHITESPACE.sub("", match.group(0)), text)
        for pattern, replacement in _FORMAT_FIXES:
            text = pattern.sub(replacement, text)
        return text

    # ------------------------------------------------------------------
    # Final normalization
    # ------------------------------------------------------------------

    @staticmethod
    def _ensure_sentence_ending(text: str) -> str:
        stripped = text.rstrip()
        if stripped and stripped[-1] not in _TERMINAL_PUNCTUATION:
            return stripped + "."
        return stripped

    @staticmethod
    def _remove_duplicate_lines(text: str) -> str:
        """Drop repeated lines, comparing case- and whitespace-insensitively.

        Lines shorter than ten characters are always kept; short lines are
        usually headings, list markers or table cells.
        """
        seen: set[str] = set()
        kept: list[str] = []
        for line in text.split("\n"):
            if len(line.strip()) < _MIN_DEDUP_LINE_LENGTH:
                kept.append(line)
                continue
            key = _ANY_WHITESPACE.sub(" ", line.strip().lower())
            if key in seen:
                continue
            seen.add(key)
            kept.append(line)
        return "\n".join(kept)
