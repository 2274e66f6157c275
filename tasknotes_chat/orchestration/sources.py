"""
Citation extraction from tool output.

Note tools print each note as a heading line followed by an ``ID: <uuid>``
line; collection search prints ``Source: <title>`` and ``Note ID: <uuid>``.
"""

import re

from ..models import Source

NOTE_ID_PATTERN = re.compile(r"ID: ([a-f0-9-]{36})", re.IGNORECASE)
COLLECTION_SOURCE_PATTERN = re.compile(
    r"^Source: ([^\n]+)\n(?:(?!-----)[^\n]*\n)*?Note ID: ([a-f0-9-]{36})",
    re.IGNORECASE | re.MULTILINE,
)


def _heading_title(text: str, note_id: str) -> str | None:
    match = re.search(
        rf"##? ([^\n]+)\n.*ID: {re.escape(note_id)}", text, re.IGNORECASE
    )
    if not match:
        return None
    title = match.group(1).strip()
    if title.lower().startswith("note: "):
        title = title[len("note: "):].strip()
    return title


def extract_sources(tool_name: str, result: str) -> list[Source]:
    """Return note citations found in one tool result, in order of appearance."""
    found: list[Source] = []
    name = tool_name.lower()

    if "note" in name:
        for match in NOTE_ID_PATTERN.finditer(result):
            note_id = match.group(1).lower()
            title = _heading_title(result, note_id)
            if title:
                found.append(Source(id=note_id, title=title))
    elif name == "search_collection":
        for match in COLLECTION_SOURCE_PATTERN.finditer(result):
            found.append(Source(id=match.group(2).lower(), title=match.group(1).strip()))

    return found


class SourceCollector:
    """Citations gathered over a turn, deduplicated by id."""

    def __init__(self):
        self._sources: dict[str, Source] = {}

    def __len__(self) -> int:
        return len(self._sources)

    def add_from_result(self, tool_name: str, result: str) -> None:
        for source in extract_sources(tool_name, result):
            self._sources.setdefault(source.id, source)

    def to_list(self) -> list[dict[str, str]]:
        return [source.to_dict() for source in self._sources.values()]
