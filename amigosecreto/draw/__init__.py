"""Draw engine: eligibility, random selection and commit of a secret target."""

from .eligibility import eligible_targets, taken_target_ids
from .engine import CommitResult, DrawEngine

__all__ = [
    "CommitResult",
    "DrawEngine",
    "eligible_targets",
    "taken_target_ids",
]
