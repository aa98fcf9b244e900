from .participant import FIELD_ALIASES, Participant
from .schema import (
    CAPITALIZED,
    DEFAULT_CONVENTIONS,
    LOWERCASE,
    NamingConvention,
    build_participant_table,
)

__all__ = [
    "CAPITALIZED",
    "DEFAULT_CONVENTIONS",
    "FIELD_ALIASES",
    "LOWERCASE",
    "NamingConvention",
    "Participant",
    "build_participant_table",
]
