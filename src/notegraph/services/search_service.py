"""Service for accent- and case-insensitive note search."""
import logging
from typing import List, Optional

from notegraph.config import config
from notegraph.models.schema import Note, SearchResult
from notegraph.observability import traced
from notegraph.storage.note_repository import NoteRepository
from notegraph.utils import fold_with_offsets, normalize_for_search

logger = logging.getLogger(__name__)

TITLE_RANK = 1
CONTENT_RANK = 2


class SearchService:
    """Linear search over the active notes.

    Query, titles and contents are compared after lower-casing and
    stripping diacritics, so ``"reunion"`` finds ``"Réunion Équipe"``.
    Every whitespace-separated token must appear in the title (rank 1) or
    every token must appear in the content (rank 2).
    """

    def __init__(
        self,
        note_repository: NoteRepository,
        preview_before: Optional[int] = None,
        preview_after: Optional[int] = None,
        preview_fallback_length: Optional[int] = None,
    ):
        """Initialize the search service.

        Args:
            note_repository: Source of the active notes.
            preview_before: Characters kept before the first match.
            preview_after: Characters kept after the first match.
            preview_fallback_length: Characters kept from the start of the
                content when the first token is not in the content.
        """
        self.notes = note_repository
        self.preview_before = (
            config.preview_before if preview_before is None else preview_before
        )
        self.preview_after = (
            config.preview_after if preview_after is None else preview_after
        )
        self.preview_fallback_length = (
            preview_fallback_length or config.preview_fallback_length
        )

    @traced("search_notes")
    def search_notes(self, query: str) -> List[SearchResult]:
        """Search active notes by title and content.

        An empty or blank query returns every active note in default order
        (oldest first) with no preview.

        Results are ordered title matches first, then content matches,
        each group oldest first.
        """
        notes = self.notes.get_all_notes()
        tokens = normalize_for_search(query or "").split()
        if not tokens:
            return [SearchResult(**note.model_dump()) for note in notes]

        ranked = []
        for note in notes:
            rank = self._rank(note, tokens)
            if rank is None:
                continue
            preview = self.build_preview(note.content, tokens[0])
            ranked.append((rank, note, preview))

        ranked.sort(key=lambda item: (item[0], item[1].created_at, item[1].id))
        logger.debug(f"Search '{query}' matched {len(ranked)} of {len(notes)} notes")
        return [
            SearchResult(**note.model_dump(), preview=preview)
            for _, note, preview in ranked
        ]

    @staticmethod
    def _rank(note: Note, tokens: List[str]) -> Optional[int]:
        title = normalize_for_search(note.title)
        if all(token in title for token in tokens):
            return TITLE_RANK
        content = normalize_for_search(note.content or "")
        if all(token in content for token in tokens):
            return CONTENT_RANK
        return None

    def build_preview(self, content: Optional[str], token: str) -> Optional[str]:
        """Snippet around the first occurrence of ``token`` in ``content``.

        ``token`` must already be normalized. Falls back to the start of the
        content when the token does not occur in it.
        """
        if not content:
            return None
        folded, offsets = fold_with_offsets(content)
        idx = folded.find(token)
        if idx == -1:
            head = content[: self.preview_fallback_length]
            return head + "..." if len(content) > self.preview_fallback_length else head

        # The window is measured in raw characters around the raw span of the
        # match, which runs up to the next folded character.
        match_start = offsets[idx]
        after = idx + len(token)
        match_end = offsets[after] if after < len(offsets) else len(content)
        start = max(0, match_start - self.preview_before)
        end = min(len(content), match_end + self.preview_after)
        preview = content[start:end]
        if start > 0:
            preview = "..." + preview
        if end < len(content):
            preview = preview + "..."
        return preview
