"""
Upload pseudo-analysis.

Counts are size-based estimates, not real document parsing:
    word_count      = size // 10
    character_count = size // 2
Language and subject matter come from simple keyword statistics over the
first 5000 characters. ZIP archives are analysed through their first
supported entry.
"""

import io
import logging
import os
import random
import re
import zipfile
import zlib
from dataclasses import dataclass, asdict
from typing import Dict, List, Optional

from portal.exceptions import ValidationError

logger = logging.getLogger(__name__)

# zipfile raises these for damaged, encrypted or unsupported entries
ARCHIVE_READ_ERRORS = (zipfile.BadZipFile, zlib.error, RuntimeError, NotImplementedError, EOFError)

SUPPORTED_ARCHIVE_EXTENSIONS = ("pdf", "docx", "xlsx", "pptx", "txt", "html")
TEXT_SAMPLE_CHARS = 5000
MIN_TEXT_FOR_LANGUAGE = 50
MIN_SUBJECT_SCORE = 3

# (language, stop-word pattern, ratio threshold) - checked in order, first hit wins
LANGUAGE_PATTERNS = [
    ("English", re.compile(r"\b(the|and|or|if|in|on|at|to|for|with|by|about|is|are)\b", re.IGNORECASE), 0.04),
    ("Spanish", re.compile(r"\b(el|la|los|las|y|o|si|en|con|por|para|es|son|está)\b", re.IGNORECASE), 0.03),
    ("French", re.compile(r"\b(le|la|les|et|ou|si|dans|sur|avec|par|pour|est|sont)\b", re.IGNORECASE), 0.03),
    ("German", re.compile(r"\b(der|die|das|und|oder|wenn|in|auf|mit|durch|für|ist|sind)\b", re.IGNORECASE), 0.03),
    ("Italian", re.compile(r"\b(il|la|i|gli|le|e|o|se|in|su|con|per|è|sono)\b", re.IGNORECASE), 0.03),
]

SUBJECT_KEYWORDS: Dict[str, List[str]] = {
    "Technical/IT": [
        "software", "hardware", "code", "programming", "algorithm", "database", "server",
        "computer", "network", "interface", "cloud", "api", "application", "digital", "developer",
        "system", "technology", "platform", "framework", "function", "module",
    ],
    "Medical/Healthcare": [
        "health", "patient", "doctor", "hospital", "clinical", "medical", "treatment",
        "disease", "diagnosis", "therapy", "pharmaceutical", "medicine", "symptom", "healthcare",
        "clinic", "physician", "nurse", "drug", "prescription", "vaccine",
    ],
    "Legal": [
        "law", "legal", "contract", "agreement", "court", "attorney", "plaintiff",
        "defendant", "clause", "provision", "jurisdiction", "statute", "regulation", "compliance",
        "litigant", "paragraph", "judicial", "lawyer", "dispute", "settlement",
    ],
    "Financial/Business": [
        "finance", "business", "market", "investment", "profit", "revenue", "strategy",
        "commercial", "economic", "fiscal", "budget", "corporate", "asset", "stock", "management",
        "accounting", "capital", "financial", "transaction", "enterprise",
    ],
    "Marketing/Advertising": [
        "marketing", "brand", "advertising", "campaign", "consumer", "customer", "product",
        "service", "market", "sales", "promotion", "audience", "demographic", "media", "content",
        "creative", "advertisement", "commercial", "communication", "engagement",
    ],
    "Academic/Educational": [
        "research", "study", "education", "academic", "student", "university", "school",
        "learning", "teaching", "theory", "concept", "analysis", "methodology", "science", "literature",
        "experiment", "hypothesis", "thesis", "dissertation", "curriculum",
    ],
}

_SUBJECT_PATTERNS = {
    subject: [re.compile(rf"\b{re.escape(keyword)}\b") for keyword in keywords]
    for subject, keywords in SUBJECT_KEYWORDS.items()
}

_NON_PRINTABLE_ASCII = re.compile(r"[^\x20-\x7E]")


@dataclass
class FileAnalysis:
    file_name: str
    file_format: str
    file_size: int
    word_count: int
    character_count: int
    images_with_text: int
    subject_matter: str
    source_language: str

    def to_dict(self) -> dict:
        return asdict(self)


def detect_language(text: str) -> str:
    """
    Guess the language of ``text`` from stop-word frequency.

    Only printable ASCII is considered, so accented stop words rarely count.
    """
    sample = _NON_PRINTABLE_ASCII.sub("", text)
    if len(sample.strip()) < MIN_TEXT_FOR_LANGUAGE:
        return "Unknown (insufficient text)"

    word_count = len(re.split(r"\s+", sample))
    for language, pattern, threshold in LANGUAGE_PATTERNS:
        matches = len(pattern.findall(sample))
        if matches / word_count > threshold:
            return language

    return "English (default)"


def detect_subject_matter(text: str) -> str:
    """Pick the keyword category with the most whole-word hits; fewer than 3 hits is 'General Content'."""
    normalized = text.lower()
    best_subject, best_score = None, -1
    for subject, patterns in _SUBJECT_PATTERNS.items():
        score = sum(len(p.findall(normalized)) for p in patterns)
        # strict > keeps the first category on ties
        if score > best_score:
            best_subject, best_score = subject, score

    if best_score < MIN_SUBJECT_SCORE:
        return "General Content"
    return best_subject


def _extension(name: str) -> str:
    return os.path.splitext(name)[1].lstrip(".").lower()


def _is_analyzable_entry(info: zipfile.ZipInfo) -> bool:
    if info.is_dir():
        return False
    if info.filename.startswith("__MACOSX") or info.filename.startswith("."):
        return False
    base_name = os.path.basename(info.filename)
    if base_name.startswith("."):
        return False
    return _extension(base_name) in SUPPORTED_ARCHIVE_EXTENSIONS


class FileAnalysisService:
    """Builds the size-derived analysis returned by the upload endpoints."""

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()

    def _images_with_text(self) -> int:
        return self._rng.randint(0, 2)

    @staticmethod
    def _text_sample(content: bytes) -> str:
        return content.decode("utf-8", errors="replace")[:TEXT_SAMPLE_CHARS]

    def analyze_upload(self, file_name: str, content: bytes) -> FileAnalysis:
        """
        Analyse an uploaded file (or the first supported document inside a ZIP).

        Raises:
            ValidationError: Corrupt ZIP or ZIP without a supported document
        """
        extension = _extension(file_name)
        logger.info(f"[FILES] Analysing {file_name} ({len(content)} bytes, extension '{extension or 'none'}')")

        if extension == "zip":
            return self._analyze_zip(file_name, content)

        sample = self._text_sample(content)
        size = len(content)
        return FileAnalysis(
            file_name=file_name,
            file_format=(extension or "unknown").upper(),
            file_size=size,
            word_count=size // 10,
            character_count=size // 2,
            images_with_text=self._images_with_text(),
            subject_matter=detect_subject_matter(sample),
            source_language=detect_language(sample)
        )

    def _analyze_zip(self, file_name: str, content: bytes) -> FileAnalysis:
        try:
            with zipfile.ZipFile(io.BytesIO(content)) as archive:
                entries = [info for info in archive.infolist() if _is_analyzable_entry(info)]
                if not entries:
                    raise ValidationError(
                        "No analyzable files found in the ZIP archive. "
                        "Please include PDF, DOCX, XLSX, PPTX, TXT, or HTML files."
                    )
                first = entries[0]
                # only the sample is decompressed, never the whole entry
                with archive.open(first) as entry:
                    sample = self._text_sample(entry.read(TEXT_SAMPLE_CHARS * 4))
        except ARCHIVE_READ_ERRORS as e:
            logger.warning(f"[FILES] Invalid ZIP archive {file_name}: {e}")
            raise ValidationError("Uploaded file is not a valid ZIP archive")

        entry_name = os.path.basename(first.filename)
        count = len(entries)
        logger.info(f"[FILES] ZIP contains {count} analysable file(s); analysing {entry_name}")

        return FileAnalysis(
            file_name=f"{file_name} (analyzing {entry_name})",
            file_format=f"ZIP ({count} file{'s' if count != 1 else ''})",
            file_size=len(content),
            word_count=first.file_size // 10,
            character_count=first.file_size // 2,
            images_with_text=self._images_with_text(),
            subject_matter=detect_subject_matter(sample),
            source_language=detect_language(sample)
        )


# Global file analysis service instance
file_analysis_service = FileAnalysisService()
