"""
TaskNotes Chat - turn orchestrator for the TaskNotes workspace assistant.

Streams model output to the client, runs note and web tools in between,
and persists every turn to an ordered conversation store.
"""

__version__ = "0.1.0"
