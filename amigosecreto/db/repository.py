"""Participant repository: the only code that talks to the store."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Optional, Sequence, TypeVar

from sqlalchemy import and_, exists, false, literal_column, not_, or_, select, table, true, update
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError

from ..errors import SchemaMismatchError, StoreError, StoreUnavailableError
from ..models.participant import Participant
from ..models.schema import DEFAULT_CONVENTIONS, NamingConvention
from .engine import make_engine

if TYPE_CHECKING:
    from ..config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

# PostgreSQL undefined_table / undefined_column
_UNDEFINED_TABLE_SQLSTATE = "42P01"
_UNDEFINED_COLUMN_SQLSTATE = "42703"

MISSING_TABLE = "table"
MISSING_COLUMN = "column"


def schema_mismatch_kind(exc: DBAPIError) -> Optional[str]:
    """Classify ``exc`` as a missing table or a missing column.

    Returns
    -------
    Optional[str]
        :data:`MISSING_TABLE`, :data:`MISSING_COLUMN`, or ``None`` when ``exc``
        is not an undefined-object error.
    """
    orig = exc.orig
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code == _UNDEFINED_TABLE_SQLSTATE:
        return MISSING_TABLE
    if code == _UNDEFINED_COLUMN_SQLSTATE:
        return MISSING_COLUMN
    message = str(orig).lower()
    if "no such table" in message:
        return MISSING_TABLE
    if "no such column" in message:
        return MISSING_COLUMN
    if "does not exist" in message:
        # 'column "x" of relation "y" does not exist' names both; the column is missing
        if "column" in message:
            return MISSING_COLUMN
        if "relation" in message:
            return MISSING_TABLE
    return None


def is_schema_mismatch(exc: DBAPIError) -> bool:
    """Return ``True`` when ``exc`` reports a missing table or column."""
    return schema_mismatch_kind(exc) is not None


class CommitStatus(str, Enum):
    """Outcome of a guarded assignment write."""

    COMMITTED = "committed"
    CONFLICT = "conflict"
    FAILED = "failed"


@dataclass(frozen=True)
class AssignmentUpdate:
    """Fields written when a participant's draw is persisted.

    ``assigned_target_id`` is left out of the write when ``None`` so that
    stores without the id column still accept name-only updates.
    """

    has_secret_assigned: bool
    assigned_target_name: Optional[str]
    assigned_target_id: Optional[int] = None

    def values_for(self, convention: NamingConvention) -> dict[str, Any]:
        values: dict[str, Any] = {
            convention.has_secret: self.has_secret_assigned,
            convention.target_name: self.assigned_target_name,
        }
        if self.assigned_target_id is not None:
            values[convention.target_id] = self.assigned_target_id
        return values


def _guarded_assignment(
    actor_id: int, target: Participant, *, by_id: bool
) -> Callable[[Connection, NamingConvention], int]:
    """Build the conditional ``UPDATE`` that assigns ``target`` to ``actor_id``.

    With ``by_id`` the guard and the write use the target-id column, and rows
    holding only a target name still count as taken. Without it the guard
    compares target names and the id column is neither read nor written.
    """
    changes = AssignmentUpdate(
        has_secret_assigned=True,
        assigned_target_name=target.name,
        assigned_target_id=target.id if by_id else None,
    )

    def _assign(conn: Connection, convention: NamingConvention) -> int:
        clause = convention.clause()
        other = convention.clause().alias("other")
        if by_id:
            held_by_other = or_(
                other.c[convention.target_id] == target.id,
                and_(
                    other.c[convention.target_id].is_(None),
                    other.c[convention.target_name] == target.name,
                ),
            )
            held_by_actor = clause.c[convention.target_id] == target.id
        else:
            held_by_other = other.c[convention.target_name] == target.name
            held_by_actor = clause.c[convention.target_name] == target.name

        target_taken = exists().where(
            other.c[convention.has_secret] == true(),
            other.c[convention.id] != actor_id,
            held_by_other,
        )
        actor_free = or_(
            clause.c[convention.has_secret].is_(None),
            clause.c[convention.has_secret] == false(),
            held_by_actor,
        )
        stmt = (
            update(clause)
            .where(
                clause.c[convention.id] == actor_id,
                actor_free,
                not_(target_taken),
            )
            .values(changes.values_for(convention))
        )
        return conn.execute(stmt).rowcount

    return _assign


class ParticipantRepository:
    """Read and update participant rows under either naming convention.

    Every statement is attempted against the primary convention first. When the
    store answers with an undefined table error the statement is retried with
    the alternate table name; an undefined column error retries it with the
    alternate column names. Any other failure is reported as
    :class:`~amigosecreto.errors.StoreUnavailableError`.
    """

    def __init__(
        self,
        engine: Optional[Engine],
        *,
        conventions: Sequence[NamingConvention] = DEFAULT_CONVENTIONS,
    ) -> None:
        """Bind the repository to ``engine``.

        Parameters
        ----------
        engine : Optional[Engine]
            Engine connected to the store. ``None`` puts the repository in
            degraded mode: reads return nothing and writes fail.
        conventions : Sequence[NamingConvention], default: DEFAULT_CONVENTIONS
            Primary and alternate naming conventions, in that order.
        """
        if len(conventions) != 2:
            raise ValueError("Exactly two naming conventions (primary, alternate) are required")
        self._engine = engine
        self._primary, self._alternate = conventions

    @classmethod
    def from_settings(cls, settings: "Settings") -> "ParticipantRepository":
        if not settings.store_configured:
            logger.warning("Participant store is not configured; running in degraded mode")
            return cls(None)
        assert settings.db_url is not None
        return cls(make_engine(settings.db_url, password=settings.db_password))

    @property
    def configured(self) -> bool:
        return self._engine is not None

    # -------- public API --------
    def list_participants(self) -> tuple[Participant, ...]:
        """Return the current snapshot ordered by id; empty when the store fails."""
        if self._engine is None:
            logger.warning("Participant store is not configured; returning no participants")
            return ()

        try:
            rows = self._run(self._select_all)
        except StoreError as exc:
            logger.error(f"Failed to list participants: {exc}")
            return ()

        participants: list[Participant] = []
        for row in rows:
            try:
                participants.append(Participant.from_row(row))
            except ValueError as exc:
                logger.warning(f"Skipping malformed participant row: {exc}")
        return tuple(sorted(participants, key=lambda p: p.id))

    def update_participant(self, participant_id: int, changes: AssignmentUpdate) -> bool:
        """Write ``changes`` to the row identified by ``participant_id``.

        Returns
        -------
        bool
            ``True`` when the store acknowledged the write for an existing row.
        """
        if self._engine is None:
            logger.warning("Participant store is not configured; update not saved")
            return False

        def _update(conn: Connection, convention: NamingConvention) -> int:
            clause = convention.clause()
            stmt = (
                update(clause)
                .where(clause.c[convention.id] == participant_id)
                .values(changes.values_for(convention))
            )
            return conn.execute(stmt).rowcount

        try:
            updated = self._run(_update)
        except (StoreError, IntegrityError) as exc:
            logger.error(f"Failed to update participant {participant_id}: {exc}")
            return False
        if updated == 0:
            logger.warning(f"No participant with id {participant_id} to update")
            return False
        return True

    def assign_target(self, actor_id: int, target: Participant) -> CommitStatus:
        """Persist ``actor_id`` -> ``target`` unless it would break an assignment.

        The write is a single conditional ``UPDATE``: it only matches when the
        actor has no secret yet (or already holds this very target) and no other
        assigned row holds the target. Repeating a successful call is harmless.
        Stores without the target-id column get the same guard on target names.

        Returns
        -------
        CommitStatus
            ``COMMITTED`` on success, ``CONFLICT`` when the guard or the unique
            index refused the write, ``FAILED`` when the store is unavailable.
        """
        if self._engine is None:
            logger.warning("Participant store is not configured; assignment not saved")
            return CommitStatus.FAILED

        try:
            try:
                updated = self._run(_guarded_assignment(actor_id, target, by_id=True))
            except SchemaMismatchError as exc:
                # Stores created before the target-id column existed
                logger.info(f"Retrying assignment with a name-only guard: {exc}")
                updated = self._run(_guarded_assignment(actor_id, target, by_id=False))
        except IntegrityError as exc:
            logger.warning(f"Store rejected assignment for participant {actor_id}: {exc.orig}")
            return CommitStatus.CONFLICT
        except StoreError as exc:
            logger.error(f"Failed to save assignment for participant {actor_id}: {exc}")
            return CommitStatus.FAILED

        if updated == 0:
            logger.warning(
                f"Assignment for participant {actor_id} refused: "
                "actor already assigned or target already taken"
            )
            return CommitStatus.CONFLICT
        return CommitStatus.COMMITTED

    # -------- internals --------
    @staticmethod
    def _select_all(conn: Connection, convention: NamingConvention) -> list[dict]:
        # SELECT * keeps rows readable even when optional columns are missing.
        stmt = select(literal_column("*")).select_from(table(convention.table))
        return [dict(row) for row in conn.execute(stmt).mappings()]

    def _run(self, operation: Callable[[Connection, NamingConvention], T]) -> T:
        """Run ``operation`` in its own transaction, falling back on schema mismatch.

        The table name and the column names are resolved independently: a
        missing table switches to the alternate table name, a missing column
        switches to the alternate column names. Each switch happens at most
        once, so a statement is attempted at most three times.

        Raises
        ------
        IntegrityError
            Passed through untouched so writers can report a conflict.
        SchemaMismatchError
            If the store still lacks a table or column after the fallbacks.
        StoreUnavailableError
            For any other store failure.
        """
        table_from = columns_from = self._primary
        while True:
            layout = columns_from.on_table(table_from)
            try:
                return self._run_with(layout, operation)
            except IntegrityError:
                raise
            except DBAPIError as exc:
                kind = schema_mismatch_kind(exc)
                if kind is None:
                    raise StoreUnavailableError(f"Participant store error: {exc.orig}") from exc
                if kind == MISSING_TABLE and table_from is self._primary:
                    table_from = self._alternate
                elif kind == MISSING_COLUMN and columns_from is self._primary:
                    columns_from = self._alternate
                else:
                    raise SchemaMismatchError(
                        f"Store matches neither the {self._primary.label} nor the "
                        f"{self._alternate.label} naming convention: {exc.orig}"
                    ) from exc
                logger.info(
                    f"Store has no such {kind} under the {layout.label} layout; "
                    f"retrying with {self._alternate.label} {kind} names"
                )
            except SQLAlchemyError as exc:
                raise StoreUnavailableError(f"Participant store error: {exc}") from exc

    def _run_with(
        self,
        convention: NamingConvention,
        operation: Callable[[Connection, NamingConvention], T],
    ) -> T:
        assert self._engine is not None
        with self._engine.begin() as conn:
            return operation(conn, convention)


__all__ = [
    "AssignmentUpdate",
    "CommitStatus",
    "ParticipantRepository",
    "is_schema_mismatch",
    "schema_mismatch_kind",
]
