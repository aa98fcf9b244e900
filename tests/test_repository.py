from __future__ import annotations

import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from sqlalchemy import Boolean, Column, Integer, MetaData, String, Table, create_engine, insert, select
from sqlalchemy.exc import OperationalError, ProgrammingError

from amigosecreto.db.repository import (
    MISSING_COLUMN,
    MISSING_TABLE,
    AssignmentUpdate,
    CommitStatus,
    ParticipantRepository,
    is_schema_mismatch,
    schema_mismatch_kind,
)
from amigosecreto.draw import DrawEngine
from amigosecreto.errors import SchemaMismatchError
from amigosecreto.models import (
    CAPITALIZED,
    LOWERCASE,
    NamingConvention,
    Participant,
    build_participant_table,
)

SNAKE_CASE = NamingConvention(
    label="snake_case",
    table="friends",
    id="id",
    name="nome",
    has_secret="tem_segredo",
    target_name="segredo",
    target_id="segredo_id",
)

MISSING = NamingConvention(
    label="missing",
    table="amigos",
    id="codigo",
    name="apelido",
    has_secret="sorteou",
    target_name="alvo",
    target_id="alvo_id",
)

AMIGOS = NamingConvention(
    label="amigos",
    table="amigos",
    id="id",
    name="nome",
    has_secret="tem_segredo",
    target_name="segredo",
    target_id="segredo_id",
)


class RepositoryTestCase(unittest.TestCase):
    convention = CAPITALIZED

    def setUp(self) -> None:
        self.engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
        self.metadata = MetaData()
        self.table = build_participant_table(self.convention, self.metadata)
        self.metadata.create_all(self.engine)

    def tearDown(self) -> None:
        self.engine.dispose()

    def _seed(self, *rows: dict) -> None:
        with self.engine.begin() as conn:
            conn.execute(insert(self.table), list(rows))

    def _seed_names(self, *names: str) -> None:
        c = self.convention
        self._seed(*({c.name: name, c.has_secret: False} for name in names))

    def _row(self, participant_id: int) -> dict:
        with self.engine.connect() as conn:
            row = conn.execute(
                select(self.table).where(self.table.c[self.convention.id] == participant_id)
            ).mappings().one()
        return dict(row)


class ListParticipantsTests(RepositoryTestCase):
    def test_unconfigured_store_returns_empty_snapshot(self) -> None:
        repository = ParticipantRepository(None)
        with self.assertLogs("amigosecreto.db.repository", level="WARNING"):
            self.assertEqual(repository.list_participants(), ())
        self.assertFalse(repository.configured)

    def test_lists_participants_in_id_order(self) -> None:
        self._seed_names("Ana", "Bea", "Cid")
        snapshot = ParticipantRepository(self.engine).list_participants()
        self.assertIsInstance(snapshot, tuple)
        self.assertEqual([p.name for p in snapshot], ["Ana", "Bea", "Cid"])
        self.assertEqual([p.id for p in snapshot], [1, 2, 3])
        self.assertFalse(any(p.has_secret_assigned for p in snapshot))

    def test_unreachable_store_returns_empty_snapshot(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            missing = Path(tmpdir) / "missing" / "store.db"
            engine = create_engine(f"sqlite:///{missing}", future=True)
            repository = ParticipantRepository(engine)
            with self.assertLogs("amigosecreto.db.repository", level="ERROR"):
                self.assertEqual(repository.list_participants(), ())
            engine.dispose()

    def test_falls_back_to_alternate_convention(self) -> None:
        self._seed_names("Ana", "Bea")
        repository = ParticipantRepository(self.engine, conventions=(MISSING, CAPITALIZED))
        with self.assertLogs("amigosecreto.db.repository", level="INFO") as logs:
            snapshot = repository.list_participants()
        self.assertEqual([p.name for p in snapshot], ["Ana", "Bea"])
        self.assertTrue(any("retrying with capitalized" in line for line in logs.output))

    def test_both_conventions_missing_raises_schema_mismatch_internally(self) -> None:
        other = NamingConvention(
            label="other",
            table="pessoas",
            id="id",
            name="nome",
            has_secret="sorteou",
            target_name="alvo",
            target_id="alvo_id",
        )
        repository = ParticipantRepository(self.engine, conventions=(MISSING, other))
        with self.assertRaises(SchemaMismatchError):
            repository._run(repository._select_all)
        with self.assertLogs("amigosecreto.db.repository", level="ERROR"):
            self.assertEqual(repository.list_participants(), ())

    def test_requires_exactly_two_conventions(self) -> None:
        with self.assertRaises(ValueError):
            ParticipantRepository(self.engine, conventions=(CAPITALIZED,))


class AlternateSchemaTests(RepositoryTestCase):
    convention = SNAKE_CASE

    def test_lists_rows_stored_under_alternate_schema(self) -> None:
        self._seed(
            {"nome": "Ana", "tem_segredo": False, "segredo": None, "segredo_id": None},
            {"nome": "Bea", "tem_segredo": True, "segredo": "Ana", "segredo_id": 1},
        )
        snapshot = ParticipantRepository(
            self.engine, conventions=(CAPITALIZED, SNAKE_CASE)
        ).list_participants()
        self.assertEqual(
            snapshot,
            (
                Participant(id=1, name="Ana"),
                Participant(
                    id=2,
                    name="Bea",
                    has_secret_assigned=True,
                    assigned_target_name="Ana",
                    assigned_target_id=1,
                ),
            ),
        )

    def test_update_retries_with_alternate_column_names(self) -> None:
        self._seed_names("Ana", "Bea")
        repository = ParticipantRepository(self.engine, conventions=(CAPITALIZED, SNAKE_CASE))
        with self.assertLogs("amigosecreto.db.repository", level="INFO") as logs:
            status = repository.assign_target(1, Participant(id=2, name="Bea"))
        self.assertIs(status, CommitStatus.COMMITTED)
        self.assertTrue(any("retrying with snake_case" in line for line in logs.output))
        row = self._row(1)
        self.assertTrue(row["tem_segredo"])
        self.assertEqual(row["segredo"], "Bea")
        self.assertEqual(row["segredo_id"], 2)


class LowercaseStoreOnSqliteTests(RepositoryTestCase):
    # SQLite matches identifiers case-insensitively, so the capitalized
    # statements reach the lowercase table without any fallback.
    convention = LOWERCASE

    def test_capitalized_statements_hit_lowercase_store_directly(self) -> None:
        self._seed_names("Ana", "Bea", "Cid")
        repository = ParticipantRepository(self.engine)
        with self.assertNoLogs("amigosecreto.db.repository", level="INFO"):
            snapshot = repository.list_participants()
            status = repository.assign_target(1, Participant(id=2, name="Bea"))
        self.assertEqual([p.name for p in snapshot], ["Ana", "Bea", "Cid"])
        self.assertIs(status, CommitStatus.COMMITTED)
        self.assertEqual(self._row(1)["segredoid"], 2)


class MixedLayoutTests(RepositoryTestCase):
    """Table name and column names are resolved independently."""

    def _store(self, convention: NamingConvention) -> None:
        self.convention = convention
        self.engine.dispose()
        self.engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
        self.metadata = MetaData()
        self.table = build_participant_table(convention, self.metadata)
        self.metadata.create_all(self.engine)
        self._seed_names("Ana", "Bea", "Cid")

    def test_primary_table_with_alternate_columns(self) -> None:
        self._store(AMIGOS.on_table(CAPITALIZED))
        repository = ParticipantRepository(self.engine, conventions=(CAPITALIZED, AMIGOS))
        with self.assertLogs("amigosecreto.db.repository", level="INFO") as logs:
            status = repository.assign_target(1, Participant(id=2, name="Bea"))
        self.assertIs(status, CommitStatus.COMMITTED)
        self.assertTrue(any("retrying with amigos column names" in line for line in logs.output))
        self.assertFalse(any("table names" in line for line in logs.output))
        row = self._row(1)
        self.assertTrue(row["tem_segredo"])
        self.assertEqual(row["segredo_id"], 2)

    def test_alternate_table_with_primary_columns(self) -> None:
        self._store(CAPITALIZED.on_table(AMIGOS))
        repository = ParticipantRepository(self.engine, conventions=(CAPITALIZED, AMIGOS))
        with self.assertLogs("amigosecreto.db.repository", level="INFO") as logs:
            status = repository.assign_target(1, Participant(id=2, name="Bea"))
        self.assertIs(status, CommitStatus.COMMITTED)
        self.assertTrue(any("retrying with amigos table names" in line for line in logs.output))
        self.assertEqual(self._row(1)["SegredoId"], 2)
        snapshot = repository.list_participants()
        self.assertEqual(snapshot[0].assigned_target_name, "Bea")


class PostgresLayoutResolutionTests(unittest.TestCase):
    """Simulates PostgreSQL, where quoted identifiers are case-sensitive."""

    class _PgError(Exception):
        def __init__(self, message: str, pgcode: str) -> None:
            super().__init__(message)
            self.pgcode = pgcode

    def setUp(self) -> None:
        self.engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
        self.repository = ParticipantRepository(self.engine)

    def tearDown(self) -> None:
        self.engine.dispose()

    def _store(self, table_name: str, id_column: str):
        def run_with(layout, operation):
            if layout.table != table_name:
                raise ProgrammingError(
                    "UPDATE", {}, self._PgError(f'relation "{layout.table}" does not exist', "42P01")
                )
            if layout.id != id_column:
                raise ProgrammingError(
                    "UPDATE", {}, self._PgError(f'column "{layout.id}" does not exist', "42703")
                )
            return 1

        return patch.object(self.repository, "_run_with", side_effect=run_with)

    def _layouts(self, run_with) -> list[tuple[str, str]]:
        return [(call.args[0].table, call.args[0].id) for call in run_with.call_args_list]

    def test_capitalized_table_with_lowercase_columns(self) -> None:
        with self._store("Friends", "id") as run_with:
            status = self.repository.assign_target(1, Participant(id=2, name="Bea"))
        self.assertIs(status, CommitStatus.COMMITTED)
        self.assertEqual(self._layouts(run_with), [("Friends", "Id"), ("Friends", "id")])

    def test_lowercase_table_with_capitalized_columns(self) -> None:
        with self._store("friends", "Id") as run_with:
            self.assertTrue(
                self.repository.update_participant(
                    1, AssignmentUpdate(has_secret_assigned=True, assigned_target_name="Bea")
                )
            )
        self.assertEqual(self._layouts(run_with), [("Friends", "Id"), ("friends", "Id")])

    def test_lowercase_table_and_columns(self) -> None:
        with self._store("friends", "id") as run_with:
            status = self.repository.assign_target(1, Participant(id=2, name="Bea"))
        self.assertIs(status, CommitStatus.COMMITTED)
        self.assertEqual(
            self._layouts(run_with),
            [("Friends", "Id"), ("friends", "Id"), ("friends", "id")],
        )

    def test_unknown_layout_fails_after_both_switches(self) -> None:
        with self._store("pessoas", "codigo") as run_with:
            with self.assertRaises(SchemaMismatchError):
                self.repository._run(lambda conn, layout: 1)
        self.assertEqual(self._layouts(run_with), [("Friends", "Id"), ("friends", "Id")])


class StoreWithoutTargetIdTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
        metadata = MetaData()
        self.table = Table(
            "Friends",
            metadata,
            Column("Id", Integer, primary_key=True),
            Column("Nome", String(255), nullable=False),
            Column("TemSegredo", Boolean, nullable=False, default=False),
            Column("Segredo", String(255), nullable=True),
        )
        metadata.create_all(self.engine)
        with self.engine.begin() as conn:
            conn.execute(
                insert(self.table),
                [{"Nome": name, "TemSegredo": False} for name in ("Ana", "Bea", "Cid")],
            )
        self.repository = ParticipantRepository(self.engine)
        self.ana, self.bea, self.cid = self.repository.list_participants()

    def tearDown(self) -> None:
        self.engine.dispose()

    def _row(self, participant_id: int) -> dict:
        with self.engine.connect() as conn:
            row = conn.execute(
                select(self.table).where(self.table.c.Id == participant_id)
            ).mappings().one()
        return dict(row)

    def test_commit_falls_back_to_name_guard(self) -> None:
        with self.assertLogs("amigosecreto.db.repository", level="INFO") as logs:
            status = DrawEngine(self.repository).commit(self.ana, self.bea).status
        self.assertIs(status, CommitStatus.COMMITTED)
        self.assertTrue(any("name-only guard" in line for line in logs.output))
        row = self._row(self.ana.id)
        self.assertTrue(row["TemSegredo"])
        self.assertEqual(row["Segredo"], "Bea")
        ana = self.repository.list_participants()[0]
        self.assertEqual(ana.assigned_target_name, "Bea")
        self.assertIsNone(ana.assigned_target_id)

    def test_repeated_commit_is_accepted(self) -> None:
        self.repository.assign_target(self.ana.id, self.bea)
        self.assertIs(self.repository.assign_target(self.ana.id, self.bea), CommitStatus.COMMITTED)

    def test_taken_name_conflicts(self) -> None:
        self.repository.assign_target(self.cid.id, self.bea)
        self.assertIs(self.repository.assign_target(self.ana.id, self.bea), CommitStatus.CONFLICT)
        self.assertFalse(self._row(self.ana.id)["TemSegredo"])

    def test_actor_cannot_switch_target(self) -> None:
        self.repository.assign_target(self.ana.id, self.bea)
        self.assertIs(self.repository.assign_target(self.ana.id, self.cid), CommitStatus.CONFLICT)
        self.assertEqual(self._row(self.ana.id)["Segredo"], "Bea")


class UpdateParticipantTests(RepositoryTestCase):
    def test_update_writes_assignment_fields(self) -> None:
        self._seed_names("Ana", "Bea")
        repository = ParticipantRepository(self.engine)
        ok = repository.update_participant(
            1, AssignmentUpdate(has_secret_assigned=True, assigned_target_name="Bea")
        )
        self.assertTrue(ok)
        row = self._row(1)
        self.assertTrue(row["TemSegredo"])
        self.assertEqual(row["Segredo"], "Bea")
        self.assertIsNone(row["SegredoId"])

    def test_update_unknown_id_returns_false(self) -> None:
        repository = ParticipantRepository(self.engine)
        self.assertFalse(
            repository.update_participant(
                99, AssignmentUpdate(has_secret_assigned=True, assigned_target_name="Bea")
            )
        )

    def test_update_without_store_returns_false(self) -> None:
        self.assertFalse(
            ParticipantRepository(None).update_participant(
                1, AssignmentUpdate(has_secret_assigned=True, assigned_target_name="Bea")
            )
        )


class AssignTargetTests(RepositoryTestCase):
    def setUp(self) -> None:
        super().setUp()
        self._seed_names("Ana", "Bea", "Cid")
        self.repository = ParticipantRepository(self.engine)
        self.ana, self.bea, self.cid = self.repository.list_participants()

    def test_assignment_is_committed(self) -> None:
        status = self.repository.assign_target(self.ana.id, self.bea)
        self.assertIs(status, CommitStatus.COMMITTED)
        ana = self.repository.list_participants()[0]
        self.assertTrue(ana.has_secret_assigned)
        self.assertEqual(ana.assigned_target_name, "Bea")
        self.assertEqual(ana.assigned_target_id, self.bea.id)

    def test_repeated_commit_leaves_state_unchanged(self) -> None:
        self.repository.assign_target(self.ana.id, self.bea)
        first = self.repository.list_participants()
        status = self.repository.assign_target(self.ana.id, self.bea)
        self.assertIs(status, CommitStatus.COMMITTED)
        self.assertEqual(self.repository.list_participants(), first)

    def test_target_claimed_by_someone_else_conflicts(self) -> None:
        self.repository.assign_target(self.cid.id, self.bea)
        status = self.repository.assign_target(self.ana.id, self.bea)
        self.assertIs(status, CommitStatus.CONFLICT)
        self.assertFalse(self._row(self.ana.id)["TemSegredo"])

    def test_legacy_name_claim_conflicts(self) -> None:
        self.repository.update_participant(
            self.cid.id, AssignmentUpdate(has_secret_assigned=True, assigned_target_name="Bea")
        )
        status = self.repository.assign_target(self.ana.id, self.bea)
        self.assertIs(status, CommitStatus.CONFLICT)

    def test_actor_cannot_switch_target(self) -> None:
        self.repository.assign_target(self.ana.id, self.bea)
        status = self.repository.assign_target(self.ana.id, self.cid)
        self.assertIs(status, CommitStatus.CONFLICT)
        row = self._row(self.ana.id)
        self.assertEqual(row["Segredo"], "Bea")
        self.assertEqual(row["SegredoId"], self.bea.id)

    def test_unique_index_violation_is_a_conflict(self) -> None:
        # Inconsistent row: target id set while the flag is still false.
        with self.engine.begin() as conn:
            conn.execute(
                self.table.update()
                .where(self.table.c.Id == self.cid.id)
                .values(SegredoId=self.bea.id)
            )
        with self.assertLogs("amigosecreto.db.repository", level="WARNING"):
            status = self.repository.assign_target(self.ana.id, self.bea)
        self.assertIs(status, CommitStatus.CONFLICT)

    def test_unconfigured_store_fails(self) -> None:
        self.assertIs(ParticipantRepository(None).assign_target(1, self.bea), CommitStatus.FAILED)


class SchemaMismatchDetectionTests(unittest.TestCase):
    class _PgError(Exception):
        def __init__(self, message: str, pgcode: str) -> None:
            super().__init__(message)
            self.pgcode = pgcode

    def test_postgres_undefined_table_code(self) -> None:
        exc = ProgrammingError("SELECT", {}, self._PgError('relation "Friends" does not exist', "42P01"))
        self.assertTrue(is_schema_mismatch(exc))

    def test_postgres_undefined_column_code(self) -> None:
        exc = ProgrammingError("UPDATE", {}, self._PgError('column "TemSegredo" does not exist', "42703"))
        self.assertTrue(is_schema_mismatch(exc))

    def test_sqlite_messages(self) -> None:
        self.assertTrue(is_schema_mismatch(OperationalError("SELECT", {}, Exception("no such table: Friends"))))
        self.assertTrue(is_schema_mismatch(OperationalError("UPDATE", {}, Exception("no such column: Id"))))

    def test_mismatch_kind_separates_tables_from_columns(self) -> None:
        self.assertEqual(
            schema_mismatch_kind(ProgrammingError("SELECT", {}, self._PgError("missing", "42P01"))),
            MISSING_TABLE,
        )
        self.assertEqual(
            schema_mismatch_kind(ProgrammingError("UPDATE", {}, self._PgError("missing", "42703"))),
            MISSING_COLUMN,
        )
        self.assertEqual(
            schema_mismatch_kind(OperationalError("SELECT", {}, Exception("no such table: Friends"))),
            MISSING_TABLE,
        )
        self.assertEqual(
            schema_mismatch_kind(
                ProgrammingError(
                    "UPDATE", {}, Exception('column "Id" of relation "Friends" does not exist')
                )
            ),
            MISSING_COLUMN,
        )
        self.assertIsNone(
            schema_mismatch_kind(OperationalError("SELECT", {}, Exception("database is locked")))
        )

    def test_connection_errors_are_not_mismatches(self) -> None:
        exc = OperationalError("SELECT", {}, self._PgError("connection refused", "08001"))
        self.assertFalse(is_schema_mismatch(exc))
        self.assertFalse(
            is_schema_mismatch(OperationalError("SELECT", {}, Exception("unable to open database file")))
        )


if __name__ == "__main__":
    unittest.main()
