"""Database access for the participant store."""

from .engine import make_engine
from .repository import AssignmentUpdate, CommitStatus, ParticipantRepository

__all__ = [
    "AssignmentUpdate",
    "CommitStatus",
    "ParticipantRepository",
    "make_engine",
]
