"""
Collection search tool.

Queries the workspace vector search endpoint for the chunks of the active
collection closest to the query. Only declared while a collection is active.
"""

import logging

import requests
from pydantic import BaseModel, Field

from ..config import config
from .registry import ToolScope

logger = logging.getLogger(__name__)

MAX_COLLECTION_RESULTS = 10


class SearchCollectionArgs(BaseModel):
    query: str = Field(..., description="The search query")
    limit: int = Field(default=5, ge=1, description="Max results (default: 5, max: 10)")


def search_collection(args: SearchCollectionArgs, scope: ToolScope) -> dict:
    headers = {"X-User-Id": scope.user_id}
    if config.tools.workspace_api_token:
        headers["Authorization"] = f"Bearer {config.tools.workspace_api_token}"

    try:
        response = requests.post(
            config.tools.vector_search_url,
            json={
                "collectionId": scope.collection_id,
                "query": args.query,
                "limit": min(args.limit, MAX_COLLECTION_RESULTS),
            },
            headers=headers,
            timeout=config.tools.timeout,
        )
        response.raise_for_status()
        body = response.json()
    except requests.exceptions.RequestException as e:
        logger.error(f"Collection search failed: {e}")
        return {"query": args.query, "error": f"Error searching collection: {e}", "results": []}

    if isinstance(body, dict):
        body = body.get("data", body)
    results = body.get("results", []) if isinstance(body, dict) else body
    return {"query": args.query, "results": results}


def format_collection_results(result: dict) -> str:
    if result.get("error"):
        return result["error"]

    results = result["results"]
    if not results:
        return f'No relevant content found in collection for query: "{result["query"]}"'

    response = f"Found {len(results)} relevant chunk(s):\n\n"
    for item in results:
        metadata = item.get("metadata") or {}
        response += "-----\n"
        response += f"Source: {metadata.get('title') or 'Untitled'}\n"
        response += f"Type: {metadata.get('sourceType', 'unknown')}\n"
        response += f"Relevance: {float(item.get('score', 1.0)) * 100:.1f}%\n"
        if metadata.get("noteId"):
            response += f"Note ID: {metadata['noteId']}\n"
        if metadata.get("sourceUrl"):
            response += f"URL: {metadata['sourceUrl']}\n"
        total_chunks = metadata.get("totalChunks") or 1
        if total_chunks > 1:
            response += f"Chunk: {metadata.get('chunkIndex', 0) + 1}/{total_chunks}\n"
        response += f"\n{item.get('content', '')}\n\n"
    return response


# Register tool with the registry
def _register():
    from .registry import ToolRegistry

    ToolRegistry.register(
        name="search_collection",
        description=(
            "Search through the collection using semantic/vector search. Returns the most "
            "relevant content chunks based on the query. Use this to find information within "
            "the collection."
        ),
        args_model=SearchCollectionArgs,
        handler=search_collection,
        formatter=format_collection_results,
        requires_collection=True,
    )


_register()
