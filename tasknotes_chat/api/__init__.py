"""
FastAPI server module for the TaskNotes chat service.

Provides the streaming chat and conversation management endpoints.
"""

from .main import app, create_app

__all__ = ["app", "create_app"]
