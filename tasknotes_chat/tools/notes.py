"""
Note tools: lookup, listing, hierarchy, tags, recency and full-text search.

Every note a formatter prints is rendered as a ``## <title>`` (or
``# Note: <title>``) line directly followed by an ``ID: <uuid>`` line, which
is what citation extraction keys on.
"""

import logging
from typing import Optional

import requests
from pydantic import BaseModel, Field

from ..config import config
from .registry import ToolScope
from .workspace import get_workspace_client

logger = logging.getLogger(__name__)

READ_NOTE_HINT = "To read the full content of any note, use the get_note_by_id tool with the note ID."


class GetNoteByIdArgs(BaseModel):
    note_id: str = Field(..., description="The UUID of the note to fetch")


class ListNotesArgs(BaseModel):
    parent_id: Optional[str] = Field(
        default=None,
        description="Filter by parent note ID. Use 'null' for root notes only. Omit to get all notes.",
    )
    limit: int = Field(default=50, ge=1, description="Maximum number of results (default: 50, max: 100)")


class GetNoteHierarchyArgs(BaseModel):
    note_id: str = Field(..., description="The UUID of the note to get hierarchy for")


class GetNotesByTagArgs(BaseModel):
    tag_name: str = Field(..., min_length=1, description="The name of the tag to search for")


class GetRecentNotesArgs(BaseModel):
    limit: int = Field(default=10, ge=1, description="Maximum number of results (default: 10, max: 50)")


class SearchNotesArgs(BaseModel):
    query: str = Field(..., description="The search query text (typo-tolerant)")
    limit: int = Field(default=10, ge=1, description="Maximum number of results to return (default: 10, max: 50)")


def _excerpt(text: Optional[str], length: int) -> str:
    text = text or ""
    return text[:length] + ("..." if len(text) > length else "")


def _note_body(note: dict) -> str:
    return note.get("searchableContent") or note.get("content") or ""


# -- get_note_by_id ----------------------------------------------------

def get_note_by_id(args: GetNoteByIdArgs, scope: ToolScope) -> dict:
    try:
        note = get_workspace_client().get_note(args.note_id, scope)
    except requests.exceptions.RequestException as e:
        logger.error(f"Fetching note {args.note_id} failed: {e}")
        return {"note_id": args.note_id, "error": f"Error fetching note: {e}"}
    if note is None:
        return {"note_id": args.note_id, "error": f"Error: Note with ID {args.note_id} not found"}
    return {"note_id": args.note_id, "note": note}


def format_note(result: dict) -> str:
    if result.get("error"):
        return result["error"]

    note = result["note"]
    tag_names = ", ".join(
        tag["name"] if isinstance(tag, dict) else str(tag) for tag in note.get("tags") or []
    )
    response = "-----\n"
    response += f"# Note: {note.get('title', 'Untitled')}\n"
    response += f"ID: {note.get('id', result['note_id'])}\n"
    if note.get("createdAt"):
        response += f"Created: {note['createdAt']}\n"
    if note.get("updatedAt"):
        response += f"Updated: {note['updatedAt']}\n"
    if tag_names:
        response += f"Tags: {tag_names}\n"
    response += "-----\n\n"
    response += _note_body(note) or "No content"
    return response


# -- list_notes ---------------------------------------------------------

def list_notes(args: ListNotesArgs, scope: ToolScope) -> dict:
    parent_id = args.parent_id
    if parent_id in ("null", ""):
        parent_id = "null"
    try:
        notes = get_workspace_client().list_notes(
            scope, parent_id=parent_id, limit=min(args.limit, 100)
        )
    except requests.exceptions.RequestException as e:
        logger.error(f"Listing notes failed: {e}")
        return {"parent_id": args.parent_id, "error": f"Error listing notes: {e}", "notes": []}
    return {"parent_id": args.parent_id, "notes": notes}


def format_note_list(result: dict) -> str:
    if result.get("error"):
        return result["error"]

    notes = result["notes"]
    if not notes:
        suffix = f" with parent ID {result['parent_id']}" if result.get("parent_id") else ""
        return f"No notes found{suffix}"

    response = f"Found {len(notes)} note(s):\n\n"
    for note in notes:
        response += f"- {note.get('title', 'Untitled')} (ID: {note.get('id')})"
        if note.get("parentId"):
            response += f" [child of {note['parentId']}]"
        response += f"\n  Updated: {note.get('updatedAt', '')}\n"
    response += f"\n{READ_NOTE_HINT}"
    return response


# -- get_note_hierarchy -------------------------------------------------

def get_note_hierarchy(args: GetNoteHierarchyArgs, scope: ToolScope) -> dict:
    client = get_workspace_client()
    try:
        note = client.get_note(args.note_id, scope)
        if note is None:
            return {"note_id": args.note_id, "error": f"Error: Note with ID {args.note_id} not found"}
        parent = client.get_note(note["parentId"], scope) if note.get("parentId") else None
        children = client.get_children(note.get("id", args.note_id), scope)
    except requests.exceptions.RequestException as e:
        logger.error(f"Fetching hierarchy for note {args.note_id} failed: {e}")
        return {"note_id": args.note_id, "error": f"Error getting note hierarchy: {e}"}
    return {"note_id": args.note_id, "note": note, "parent": parent, "children": children}


def format_note_hierarchy(result: dict) -> str:
    if result.get("error"):
        return result["error"]

    note = result["note"]
    response = "-----\n"
    response += f"# Note: {note.get('title', 'Untitled')}\n"
    response += f"ID: {note.get('id', result['note_id'])}\n\n"

    parent = result["parent"]
    if parent is not None:
        response += f"## Parent Note:\n- {parent.get('title', 'Untitled')} (ID: {parent.get('id')})\n\n"
    elif note.get("parentId"):
        response += f"## Parent Note: {note['parentId']} (not accessible)\n\n"
    else:
        response += "## Parent Note: None (this is a root note)\n\n"

    children = result["children"]
    response += f"## Child Notes ({len(children)}):\n"
    if children:
        for child in children:
            response += f"- {child.get('title', 'Untitled')} (ID: {child.get('id')})\n"
    else:
        response += "No child notes\n"
    response += "\n-----\n"
    return response


# -- get_notes_by_tag / get_recent_notes -----------------------------

def get_notes_by_tag(args: GetNotesByTagArgs, scope: ToolScope) -> dict:
    try:
        notes = get_workspace_client().get_notes_by_tag(args.tag_name, scope)
    except requests.exceptions.RequestException as e:
        logger.error(f"Fetching notes for tag '{args.tag_name}' failed: {e}")
        return {"tag_name": args.tag_name, "error": f"Error getting notes by tag: {e}", "notes": []}
    return {"tag_name": args.tag_name, "notes": notes}


def get_recent_notes(args: GetRecentNotesArgs, scope: ToolScope) -> dict:
    try:
        notes = get_workspace_client().get_recent_notes(scope, limit=min(args.limit, 50))
    except requests.exceptions.RequestException as e:
        logger.error(f"Fetching recent notes failed: {e}")
        return {"error": f"Error getting recent notes: {e}", "notes": []}
    return {"notes": notes}


def _format_note_entries(notes: list[dict], excerpt_length: int = 200) -> str:
    response = ""
    for note in notes:
        response += "-----\n"
        response += f"## {note.get('title', 'Untitled')}\n"
        response += f"ID: {note.get('id')}\n"
        response += f"Updated: {note.get('updatedAt', '')}\n"
        response += f"Excerpt: {_excerpt(_note_body(note), excerpt_length)}\n\n"
    return response


def format_tagged_notes(result: dict) -> str:
    if result.get("error"):
        return result["error"]
    notes = result["notes"]
    if not notes:
        return f'No notes found with tag: "{result["tag_name"]}"'
    return f'Found {len(notes)} note(s) with tag "{result["tag_name"]}":\n\n' + _format_note_entries(notes)


def format_recent_notes(result: dict) -> str:
    if result.get("error"):
        return result["error"]
    notes = result["notes"]
    if not notes:
        return "No recent notes found"
    return f"{len(notes)} most recent note(s):\n\n" + _format_note_entries(notes)


# -- search_notes (Meilisearch) ---------------------------------------

def search_notes(args: SearchNotesArgs, scope: ToolScope) -> dict:
    """Search the caller's note index, keeping the best chunk per note.

    Personal notes live in the ``personal`` index and are filtered to the
    caller; team notes live in an index named after the team.
    """
    query = args.query.strip()
    if not query:
        return {"query": args.query, "error": "Search query is empty.", "results": []}

    limit = min(args.limit, 50)
    index_name = scope.team_id or "personal"
    headers = {"Content-Type": "application/json"}
    if config.tools.meilisearch_key:
        headers["Authorization"] = f"Bearer {config.tools.meilisearch_key}"

    try:
        response = requests.post(
            f"{config.tools.meilisearch_url.rstrip('/')}/indexes/{index_name}/search",
            json={
                "q": query,
                # Over-fetch: one note can be indexed as several chunks
                "limit": limit * 10,
                "attributesToSearchOn": ["title", "searchableContent"],
            },
            headers=headers,
            timeout=config.tools.timeout,
        )
        response.raise_for_status()
        hits = response.json().get("hits", [])
    except requests.exceptions.RequestException as e:
        logger.error(f"Note search failed: {e}")
        return {"query": query, "error": f"Error searching notes: {e}", "results": []}

    if not scope.team_id:
        hits = [hit for hit in hits if hit.get("userId") == scope.user_id]

    unique: dict[str, dict] = {}
    for hit in hits:
        unique.setdefault(hit.get("noteId") or hit.get("id"), hit)

    return {"query": query, "results": list(unique.values())[:limit]}


def format_search_results(result: dict) -> str:
    if result.get("error"):
        return result["error"]

    hits = result["results"]
    if not hits:
        return f'No notes found matching query: "{result["query"]}"'

    response = f'Found {len(hits)} result(s) matching "{result["query"]}":\n\n'
    for hit in hits:
        response += "-----\n"
        response += f"## {hit.get('title', 'Untitled')}\n"
        response += f"ID: {hit.get('noteId') or hit.get('id')}\n"
        response += f"Updated: {hit.get('updatedAt', '')}\n"
        total_chunks = hit.get("totalChunks") or 1
        if total_chunks > 1:
            response += f"(Showing chunk {hit.get('chunkIndex', 0) + 1} of {total_chunks})\n"
        response += f"\nExcerpt: {_excerpt(hit.get('searchableContent'), 300)}\n\n"
    response += f"\n{READ_NOTE_HINT}"
    return response


# Register tools with the registry
def _register():
    from .registry import ToolRegistry

    ToolRegistry.register(
        name="get_note_by_id",
        description=(
            "Fetch a single note by its ID. Returns the full note content, title, metadata, "
            "and tags. Use this when you need to read the complete content of a specific note."
        ),
        args_model=GetNoteByIdArgs,
        handler=get_note_by_id,
        formatter=format_note,
    )
    ToolRegistry.register(
        name="search_notes",
        description=(
            "Search through all accessible notes using a text query with typo-tolerance. "
            "Searches in both note titles and content. Returns a list of matching notes with "
            "excerpts. Use this to find relevant notes based on keywords or topics."
        ),
        args_model=SearchNotesArgs,
        handler=search_notes,
        formatter=format_search_results,
    )
    ToolRegistry.register(
        name="list_notes",
        description=(
            "List all accessible notes with optional filtering. Returns note metadata "
            "(title, ID, parent) without full content."
        ),
        args_model=ListNotesArgs,
        handler=list_notes,
        formatter=format_note_list,
    )
    ToolRegistry.register(
        name="get_note_hierarchy",
        description=(
            "Get a note's position in the hierarchy, including its parent note and all child "
            "notes. Use this to understand how notes are organized or to navigate the note tree."
        ),
        args_model=GetNoteHierarchyArgs,
        handler=get_note_hierarchy,
        formatter=format_note_hierarchy,
    )
    ToolRegistry.register(
        name="get_notes_by_tag",
        description=(
            "Find all notes that have a specific tag. Returns a list of notes with excerpts."
        ),
        args_model=GetNotesByTagArgs,
        handler=get_notes_by_tag,
        formatter=format_tagged_notes,
    )
    ToolRegistry.register(
        name="get_recent_notes",
        description=(
            "Get the most recently modified notes, sorted by update time. Returns a list of "
            "notes with excerpts."
        ),
        args_model=GetRecentNotesArgs,
        handler=get_recent_notes,
        formatter=format_recent_notes,
    )


_register()
