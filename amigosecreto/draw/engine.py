"""Engine that proposes a secret target and commits it through the repository."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Sequence

from ..db.repository import CommitStatus
from ..errors import ExhaustedError
from ..models.participant import Participant
from .eligibility import eligible_targets

if TYPE_CHECKING:
    from ..db.repository import ParticipantRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommitResult:
    """Outcome of :meth:`DrawEngine.commit`.

    Attributes
    ----------
    actor : Participant
        Participant whose draw was persisted (or not).
    target : Participant
        Proposed target.
    status : CommitStatus
        ``COMMITTED``, ``CONFLICT`` or ``FAILED``.
    """

    actor: Participant
    target: Participant
    status: CommitStatus

    @property
    def ok(self) -> bool:
        return self.status is CommitStatus.COMMITTED


class DrawEngine:
    """Engine that draws a target for an actor and persists the pairing."""

    def __init__(
        self,
        repository: "ParticipantRepository",
        *,
        rng: Optional[random.Random] = None,
    ) -> None:
        """Create a draw engine bound to a participant repository.

        Parameters
        ----------
        repository : ParticipantRepository
            Repository used by :meth:`commit` to persist assignments.
        rng : Optional[random.Random], default: None
            Random source used by :meth:`draw`. Defaults to
            :class:`random.SystemRandom`; tests pass a seeded generator.
        """

        self._repository = repository
        self._rng = rng or random.SystemRandom()

    def draw(self, participants: Sequence[Participant], actor: Participant) -> Participant:
        """Pick one eligible target for ``actor`` uniformly at random.

        Nothing is written; the returned participant is only a proposal until
        :meth:`commit` succeeds.

        Parameters
        ----------
        participants : Sequence[Participant]
            Snapshot the draw is computed against.
        actor : Participant
            Participant drawing. Must belong to ``participants``.

        Returns
        -------
        Participant
            The proposed target.

        Raises
        ------
        ExhaustedError
            If no eligible target remains for ``actor``.
        ValueError
            If ``actor`` is not part of ``participants``.
        """
        candidates = eligible_targets(participants, actor)
        if not candidates:
            logger.info(f"No eligible target left for participant {actor.id}")
            raise ExhaustedError()
        if len(candidates) == 1:
            return candidates[0]
        return candidates[self._rng.randrange(len(candidates))]

    def commit(self, actor: Participant, target: Participant) -> CommitResult:
        """Persist ``target`` as the secret of ``actor``.

        The call is not retried. After a ``FAILED`` result the caller may call
        again with the same pair; a repeated call after success reports
        ``COMMITTED`` without changing the stored row. Callers reload the
        snapshot afterwards to observe the new global state.

        Raises
        ------
        ValueError
            If ``actor`` and ``target`` are the same participant.
        """
        if actor.id == target.id:
            raise ValueError("A participant cannot be assigned to themself")

        status = self._repository.assign_target(actor.id, target)
        if status is CommitStatus.COMMITTED:
            logger.info(f"Participant {actor.id} drew a secret target")
        return CommitResult(actor=actor, target=target, status=status)


__all__ = ["CommitResult", "DrawEngine"]
