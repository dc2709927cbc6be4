"""Derivation of note metadata from raw markdown.

Everything here is a pure function of the note text: the note type and
tags declared in the frontmatter block, inline ``#tags``, checklist tasks
and ``[[wikilinks]]``. Nothing touches the database, so each extractor can
be tested on plain strings.

Grammar handled by the scanners:

- Frontmatter: a leading ``---`` block. ``type:`` and ``tags:`` are read
  line by line from its raw text, so a line YAML would reject elsewhere in
  the block does not hide them and tag values are never type-coerced.
- Inline tag: ``#`` + ``[a-zA-Z0-9_/-]+``, where the ``#`` does not follow a
  word character or another ``#`` (so headings and URL fragments are skipped).
- Task line: ``^[\\s-]*\\[([ x>-])\\]\\s+(.+)$``.
- Wikilink: ``[[title]]`` or ``[[title|alias]]``, not preceded by ``\\``.
"""
import logging
import re
from typing import Any, Dict, List, Optional, Set, Tuple

import yaml
from frontmatter.default_handlers import YAMLHandler

from notegraph.models.schema import NoteType, ParsedTask, ParsedWikilink, TaskStatus

logger = logging.getLogger(__name__)

DEFAULT_TASK_MAX_LENGTH = 200

_TAG_CHARS = r"[a-zA-Z0-9_/-]+"
_INLINE_TAG_RE = re.compile(r"(?<![\w#])#(" + _TAG_CHARS + ")")
_VALID_TAG_RE = re.compile(r"^" + _TAG_CHARS + r"$")
_TASK_RE = re.compile(r"^[\s-]*\[([ x>-])\]\s+(.+)$")
_WIKILINK_RE = re.compile(r"(?<!\\)\[\[([^\]|]+)(?:\|([^\]]+))?\]\]")
_TYPE_LINE_RE = re.compile(r"^type:[ \t]*(.*?)[ \t]*$", re.MULTILINE)
_TAGS_LINE_RE = re.compile(r"^tags:[ \t]*(.*?)[ \t]*$")
_LIST_ITEM_RE = re.compile(r"^[ \t]*-[ \t]+(.*?)[ \t]*$")

_yaml_handler = YAMLHandler()


def normalize_line_endings(content: Optional[str]) -> str:
    """Convert CRLF and lone CR line endings to LF."""
    if not content:
        return ""
    return content.replace("\r\n", "\n").replace("\r", "\n")


def split_frontmatter_block(content: Optional[str]) -> Tuple[Optional[str], str]:
    """Split content into (raw frontmatter text, body).

    The frontmatter is None when the content does not open with a closed
    ``---`` block.
    """
    text = normalize_line_endings(content)
    if not _yaml_handler.detect(text):
        return None, text
    try:
        block, body = _yaml_handler.split(text)
    except ValueError:
        # Opening delimiter without a closing one
        return None, text
    return block, body


def parse_frontmatter(content: Optional[str]) -> Dict[str, Any]:
    """Return the frontmatter as a YAML mapping, or {} when there is none.

    Fails open: malformed or non-mapping YAML yields an empty dict.
    """
    block, _ = split_frontmatter_block(content)
    if block is None:
        return {}
    try:
        metadata = _yaml_handler.load(block)
    except yaml.YAMLError as e:
        logger.debug(f"Ignoring unparseable frontmatter: {e}")
        return {}
    return dict(metadata) if isinstance(metadata, dict) else {}


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
        return value[1:-1].strip()
    return value


def parse_type_from_frontmatter(content: Optional[str]) -> NoteType:
    """Read ``type:`` from frontmatter; anything unknown becomes NOTE."""
    note_type = declared_note_type(content)
    return note_type or NoteType.NOTE


def declared_note_type(content: Optional[str]) -> Optional[NoteType]:
    """Read the ``type:`` line of the frontmatter.

    Returns None when the line is absent or its value is not a known type.
    """
    block, _ = split_frontmatter_block(content)
    if block is None:
        return None
    match = _TYPE_LINE_RE.search(block)
    if not match:
        return None
    value = _unquote(match.group(1))
    note_type = NoteType.parse(value)
    if note_type is None:
        logger.debug(f"Skipping unknown note type {value!r}")
    return note_type


def _clean_tag(raw: str) -> Optional[str]:
    tag = _unquote(raw).lstrip("#").strip("/")
    if not tag or not _VALID_TAG_RE.match(tag):
        if tag:
            logger.debug(f"Skipping invalid tag {raw!r}")
        return None
    return tag


def _frontmatter_tags(block: str) -> List[str]:
    """Tags from a ``tags:`` line, as ``[a, b]``, ``a, b`` or a ``- a`` list."""
    items: List[str] = []
    lines = block.split("\n")
    for i, line in enumerate(lines):
        match = _TAGS_LINE_RE.match(line)
        if not match:
            continue
        value = match.group(1)
        if value:
            items = value.strip("[]").split(",")
        else:
            for item_line in lines[i + 1:]:
                item = _LIST_ITEM_RE.match(item_line)
                if not item:
                    break
                items.append(item.group(1))
        break
    return [tag for tag in (_clean_tag(item) for item in items) if tag]


def parse_tags(content: Optional[str]) -> Set[str]:
    """Collect the deduplicated tags of a note.

    Merges inline ``#tags`` from the body with the frontmatter ``tags:``
    entry. Hierarchical tags such as ``dev/frontend`` are kept as single
    strings.
    """
    block, body = split_frontmatter_block(content)
    tags: Set[str] = set(_frontmatter_tags(block)) if block else set()
    for match in _INLINE_TAG_RE.finditer(body):
        tag = _clean_tag(match.group(1))
        if tag:
            tags.add(tag)
    return tags


def parse_tasks(
    content: Optional[str], max_length: int = DEFAULT_TASK_MAX_LENGTH
) -> List[ParsedTask]:
    """Extract checklist tasks in line order.

    Each task is exactly one line; the text after the checkbox is trimmed
    and capped at ``max_length`` characters. ``line_number`` is the
    0-based index of the line in the LF-normalized content.
    """
    tasks: List[ParsedTask] = []
    for line_number, line in enumerate(normalize_line_endings(content).split("\n")):
        match = _TASK_RE.match(line)
        if not match:
            continue
        status = TaskStatus.from_marker(match.group(1))
        text = match.group(2).strip()[:max_length].rstrip()
        if status is None or not text:
            continue
        tasks.append(ParsedTask(content=text, status=status, line_number=line_number))
    return tasks


def parse_wikilinks(content: Optional[str]) -> List[ParsedWikilink]:
    """Find ``[[title]]`` / ``[[title|alias]]`` occurrences with offsets.

    Offsets index into ``content`` as given (no line-ending normalization),
    so they can be stored as link positions.
    """
    links: List[ParsedWikilink] = []
    if not content:
        return links
    for match in _WIKILINK_RE.finditer(content):
        title = match.group(1).strip()
        if not title:
            continue
        alias = match.group(2).strip() if match.group(2) else None
        links.append(
            ParsedWikilink(
                title=title,
                alias=alias or None,
                start=match.start(),
                end=match.end(),
                title_span=match.span(1),
                alias_span=match.span(2) if match.group(2) else None,
            )
        )
    return links


def rewrite_wikilink_titles(content: str, old_title: str, new_title: str) -> Tuple[str, int]:
    """Rewrite ``[[old]]`` and ``[[old|alias]]`` to point at ``new_title``.

    Alias text is preserved. Escaped links (``\\[[old]]``) are left alone.

    Returns:
        The rewritten text and the number of replacements.
    """
    if not content or old_title == new_title:
        return content, 0
    pattern = re.compile(r"(?<!\\)\[\[" + re.escape(old_title) + r"(?=\]\]|\|)")
    return pattern.subn(lambda _: "[[" + new_title, content)


class ContentExtractor:
    """Bundles the extractors with their configured limits.

    Repositories take one of these so tests can swap in a different
    task length cap without touching global config.
    """

    def __init__(self, task_max_length: int = DEFAULT_TASK_MAX_LENGTH):
        self.task_max_length = task_max_length

    def parse_type(self, content: Optional[str]) -> NoteType:
        return parse_type_from_frontmatter(content)

    def declared_type(self, content: Optional[str]) -> Optional[NoteType]:
        return declared_note_type(content)

    def parse_tags(self, content: Optional[str]) -> Set[str]:
        return parse_tags(content)

    def parse_tasks(self, content: Optional[str]) -> List[ParsedTask]:
        return parse_tasks(content, max_length=self.task_max_length)

    def parse_wikilinks(self, content: Optional[str]) -> List[ParsedWikilink]:
        return parse_wikilinks(content)
