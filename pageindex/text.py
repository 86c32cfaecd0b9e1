"""
Text helpers shared by extraction and indexing.

`norm` values are produced here and the index tokenizer expects them:
diacritics are already gone by the time text is tokenized, so tokens
are plain ASCII letters and digits.
"""

import re
import unicodedata
from typing import List, Optional


_WHITESPACE_RE = re.compile(r"\s+")
_COMBINING_MARKS_RE = re.compile(r"[\u0300-\u036f]")
_TOKEN_SPLIT_RE = re.compile(r"[^a-z0-9]+", re.IGNORECASE)

MIN_TERM_LENGTH = 2


def collapse_whitespace(text: str) -> str:
    """Collapse every whitespace run to a single space and trim."""
    return _WHITESPACE_RE.sub(" ", text or "").strip()


def normalize_text(text: Optional[str]) -> str:
    """
    Canonical form used for indexing.

    Lowercases, decomposes (NFD) and drops combining diacritical marks, so
    "Canción" and "cancion" normalize identically. Idempotent.
    """
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFD", text.lower())
    return _COMBINING_MARKS_RE.sub("", decomposed)


def tokenize(text: str) -> List[str]:
    """Split on runs of characters outside [a-z0-9]."""
    return [t for t in _TOKEN_SPLIT_RE.split(text or "") if t]


def process_term(term: str) -> Optional[str]:
    """Drop single-character terms."""
    if term and len(term) >= MIN_TERM_LENGTH:
        return term
    return None


def terms(text: str) -> List[str]:
    """Tokenize and filter, preserving order and duplicates."""
    out = []
    for token in tokenize(text):
        term = process_term(token)
        if term is not None:
            out.append(term)
    return out
