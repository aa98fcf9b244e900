"""Table layouts of the participant store.

The store exists under two historical naming conventions: a capitalised one
(``"Friends"`` with ``Id``, ``Nome`` ...) and an all-lowercase one. The
repository only talks to the store through a :class:`NamingConvention`, so
the mapping between both worlds lives in this module.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional

from sqlalchemy import (
    Boolean,
    Column,
    Index,
    MetaData,
    String,
    Table,
    column,
    table,
)
from sqlalchemy.sql.expression import TableClause

from .id_type import ID_TYPE


@dataclass(frozen=True)
class NamingConvention:
    """Table and column names used by one schema variant."""

    label: str
    table: str
    id: str
    name: str
    has_secret: str
    target_name: str
    target_id: str

    def clause(self) -> TableClause:
        """Lightweight table construct for building statements against this variant."""
        return table(
            self.table,
            column(self.id),
            column(self.name),
            column(self.has_secret),
            column(self.target_name),
            column(self.target_id),
        )

    def on_table(self, other: "NamingConvention") -> "NamingConvention":
        """These column names on the table named by ``other``.

        Stores written by older clients mix a capitalised table name with
        lowercase columns, so the two halves are resolved independently.
        """
        if other.table == self.table:
            return self
        return replace(
            self,
            label=f"{other.label} table with {self.label} columns",
            table=other.table,
        )


CAPITALIZED = NamingConvention(
    label="capitalized",
    table="Friends",
    id="Id",
    name="Nome",
    has_secret="TemSegredo",
    target_name="Segredo",
    target_id="SegredoId",
)

LOWERCASE = NamingConvention(
    label="lowercase",
    table="friends",
    id="id",
    name="nome",
    has_secret="temsegredo",
    target_name="segredo",
    target_id="segredoid",
)

# Primary first, alternate second.
DEFAULT_CONVENTIONS: tuple[NamingConvention, NamingConvention] = (CAPITALIZED, LOWERCASE)


def build_participant_table(
    convention: NamingConvention, metadata: Optional[MetaData] = None
) -> Table:
    """Return a full :class:`Table` definition for ``convention``.

    Used by the dev scripts and the tests to create the store. The unique index
    on the target-id column keeps two drawers from holding the same target;
    unassigned rows carry ``NULL`` there and do not collide.
    """
    metadata = metadata if metadata is not None else MetaData()
    return Table(
        convention.table,
        metadata,
        Column(convention.id, ID_TYPE, primary_key=True, autoincrement=True),
        Column(convention.name, String(255), nullable=False),
        Column(convention.has_secret, Boolean, nullable=False, default=False),
        Column(convention.target_name, String(255), nullable=True),
        Column(convention.target_id, ID_TYPE, nullable=True),
        Index(
            f"ix_{convention.table}_{convention.target_id}_unique",
            convention.target_id,
            unique=True,
        ),
    )


__all__ = [
    "CAPITALIZED",
    "DEFAULT_CONVENTIONS",
    "LOWERCASE",
    "NamingConvention",
    "build_participant_table",
]
