"""Per-user session flow: identify, draw, reveal and confirm.

The presentation layer keeps one :class:`DrawSession` per browser session and
renders whatever state it exposes. The session never shares its snapshot with
other sessions; every draw is computed against the snapshot it last loaded.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from .db.repository import CommitStatus, ParticipantRepository
from .draw.engine import CommitResult, DrawEngine
from .errors import (
    ALREADY_DRAWN_MESSAGE,
    CONFLICT_MESSAGE,
    STORE_FAILURE_MESSAGE,
    ExhaustedError,
)
from .insight.base import Insight, InsightGenerator, NullInsightGenerator
from .models.participant import Participant

if TYPE_CHECKING:
    from .config import Settings


class DrawSession:
    """State machine behind the draw screen.

    Attributes
    ----------
    participants : tuple[Participant, ...]
        Last snapshot loaded from the repository.
    current_user : Optional[Participant]
        Participant who identified themself, if any.
    drawn : Optional[Participant]
        Proposed target, not yet durable unless ``revealed`` is ``True``.
    revealed : bool
        ``True`` once the proposal was committed and may be shown.
    error : Optional[str]
        User-facing message of the last failed action.
    """

    def __init__(
        self,
        repository: ParticipantRepository,
        *,
        engine: Optional[DrawEngine] = None,
        insight_generator: Optional[InsightGenerator] = None,
    ) -> None:
        self.repository = repository
        self.engine = engine or DrawEngine(repository)
        self.insight_generator = insight_generator or NullInsightGenerator()
        self.participants: tuple[Participant, ...] = ()
        self.current_user: Optional[Participant] = None
        self.drawn: Optional[Participant] = None
        self.revealed = False
        self.error: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: "Settings") -> "DrawSession":
        from .insight import build_insight_generator

        return cls(
            ParticipantRepository.from_settings(settings),
            insight_generator=build_insight_generator(settings),
        )

    def load(self) -> tuple[Participant, ...]:
        """Reload the snapshot and refresh ``current_user`` from it.

        A user whose row is no longer in the snapshot is logged out.
        """
        self.participants = self.repository.list_participants()
        if self.current_user is not None:
            current = self._find(self.current_user.id)
            if current is None:
                self.logout()
            else:
                self.current_user = current
        return self.participants

    def loginable(self) -> list[Participant]:
        """Participants who have not drawn yet and may identify themselves."""
        return [p for p in self.participants if not p.has_secret_assigned]

    def select(self, participant_id: int) -> Participant:
        """Identify the session as ``participant_id``.

        Raises
        ------
        ValueError
            If the participant is unknown or has already drawn.
        """
        participant = self._find(participant_id)
        if participant is None:
            raise ValueError(f"Unknown participant {participant_id}")
        if participant.has_secret_assigned:
            raise ValueError(f"Participant {participant_id} has already drawn")
        self.current_user = participant
        self.drawn = None
        self.revealed = False
        self.error = None
        return participant

    def draw(self) -> Optional[Participant]:
        """Propose a target for the current user; ``None`` when none is left.

        A pending proposal is returned as-is so that reruns of the screen do
        not reshuffle it.
        """
        if self.current_user is None:
            raise RuntimeError("No participant selected")
        if self.drawn is not None:
            return self.drawn

        try:
            self.drawn = self.engine.draw(self.participants, self.current_user)
        except ExhaustedError as exc:
            self.error = str(exc)
            return None
        self.error = None
        return self.drawn

    def confirm(self) -> CommitResult:
        """Commit the pending proposal, then reload the snapshot.

        On a store failure the proposal is kept so the user can retry the same
        pair. On a conflict the proposal is dropped and a fresh draw is needed,
        unless the user already drew in another session: then they are logged
        out.
        """
        if self.current_user is None or self.drawn is None:
            raise RuntimeError("Nothing to confirm")

        result = self.engine.commit(self.current_user, self.drawn)
        if result.status is CommitStatus.COMMITTED:
            self.revealed = True
            self.error = None
            self.load()
        elif result.status is CommitStatus.CONFLICT:
            self.drawn = None
            self.load()
            if self.current_user is not None and self.current_user.has_secret_assigned:
                self.logout()
                self.error = ALREADY_DRAWN_MESSAGE
            else:
                self.error = CONFLICT_MESSAGE
        else:
            self.error = STORE_FAILURE_MESSAGE
        return result

    def logout(self) -> None:
        self.current_user = None
        self.drawn = None
        self.revealed = False
        self.error = None

    def insight(self) -> Optional[Insight]:
        return self.insight_generator.generate_insight(self.participants)

    def _find(self, participant_id: int) -> Optional[Participant]:
        for participant in self.participants:
            if participant.id == participant_id:
                return participant
        return None


__all__ = ["DrawSession"]
