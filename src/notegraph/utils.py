"""Utility functions for notegraph."""
import re
import unicodedata
from typing import List, Tuple

_NON_SLUG_CHARS = re.compile(r"[^a-z0-9]+")
_COMBINING_MARKS = re.compile(r"[\u0300-\u036f]")


def strip_diacritics(text: str) -> str:
    """Remove combining marks (U+0300-U+036F) after NFD decomposition.

    Examples:
        "Réunion Équipe" -> "Reunion Equipe"
        "Tâche" -> "Tache"
    """
    decomposed = unicodedata.normalize("NFD", text)
    return _COMBINING_MARKS.sub("", decomposed)


def fold_with_offsets(text: str) -> Tuple[str, List[int]]:
    """Fold ``text`` for search, one source character at a time.

    Returns the folded string and, for each folded character, the index of
    the source character it came from. Marks removed by folding leave no
    entry, so "e" followed by U+0301 folds to one "e" mapped to index 0.
    """
    folded: List[str] = []
    offsets: List[int] = []
    for i, ch in enumerate(text or ""):
        piece = strip_diacritics(ch.lower())
        folded.append(piece)
        offsets.extend([i] * len(piece))
    return "".join(folded), offsets


def normalize_for_search(text: str) -> str:
    """Lower-case and strip diacritics so comparisons ignore case and accents."""
    return fold_with_offsets(text)[0]


def generate_slug(title: str) -> str:
    """Generate a URL-safe slug from a note title.

    Converts text to a format that:
    - Is lower-case ASCII without accents
    - Uses single hyphens between alphanumeric runs
    - Never starts or ends with a hyphen

    Examples:
        "Réunion: Équipe (2026)" -> "reunion-equipe-2026"
        "Hello World!" -> "hello-world"
        "!!!" -> "untitled"

    Args:
        title: The note title.

    Returns:
        The slug, or "untitled" when nothing alphanumeric remains.
    """
    slug = _NON_SLUG_CHARS.sub("-", normalize_for_search(title or ""))
    return slug.strip("-") or "untitled"


def escape_like_pattern(value: str) -> str:
    """Escape SQL LIKE wildcards to treat them as literals.

    Prevents SQL LIKE pattern injection where user input containing
    '%' or '_' could match unintended patterns. Pair with
    ``escape="\\\\"`` on the ``like()`` call.
    """
    # Use str.translate() for single-pass efficiency
    escape_table = str.maketrans(
        {
            "\\": "\\\\",  # Escape backslash first
            "%": "\\%",
            "_": "\\_",
        }
    )
    return value.translate(escape_table)
