"""Text processing utility functions for the map pipeline."""

import html
import unicodedata


def strip_diacritics(text: str) -> str:
    """Decompose characters and drop combining marks ("Bogotá" -> "Bogota")."""
    if not text:
        return ""

    decomposed = unicodedata.normalize("NFD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def normalize_for_search(text: str) -> str:
    """Normalize text for substring search.

    Lowercases, then strips diacritical marks. Punctuation and spacing are
    kept so multi-word terms still match literally.

    Args:
        text: Text to normalize

    Returns:
        Normalized text
    """
    if not text:
        return ""

    return strip_diacritics(text.lower())


def build_search_text(*fields: str | None) -> str:
    """Join the searchable fields of a record into one normalized string."""
    return normalize_for_search(" ".join(f for f in fields if f))


def escape_html(value="") -> str:
    """Escape a value for HTML text and attribute contexts."""
    if value is None:
        value = ""
    return html.escape(str(value), quote=True)
