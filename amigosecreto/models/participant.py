"""Participant snapshot value and store-row normalisation."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Mapping, Optional


# Store keys accepted for each field; the first key present in a row wins.
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "id": ("Id", "id"),
    "name": ("Nome", "nome"),
    "has_secret_assigned": ("TemSegredo", "temsegredo", "tem_segredo"),
    "assigned_target_name": ("Segredo", "segredo"),
    "assigned_target_id": ("SegredoId", "segredoid", "segredo_id"),
}


def _first_present(row: Mapping[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        if key in row and row[key] is not None:
            return row[key]
    return None


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "t", "true", "yes", "sim"}
    return bool(value)


@dataclass(frozen=True)
class Participant:
    """Immutable view of one participant row.

    Attributes
    ----------
    id : int
        Store-assigned identifier.
    name : str
        Display name, assumed unique within the group.
    has_secret_assigned : bool
        ``True`` once this participant has drawn someone.
    assigned_target_name : Optional[str]
        Name of the drawn participant, kept for readability in the store.
    assigned_target_id : Optional[int]
        Identifier of the drawn participant; the authoritative link.
    """

    id: int
    name: str
    has_secret_assigned: bool = False
    assigned_target_name: Optional[str] = None
    assigned_target_id: Optional[int] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Participant":
        """Build a participant from a store row under either naming convention.

        Raises
        ------
        ValueError
            If the row carries no identifier.
        """
        raw_id = _first_present(row, FIELD_ALIASES["id"])
        if raw_id is None:
            raise ValueError(f"Participant row without an id: {dict(row)!r}")

        name = _first_present(row, FIELD_ALIASES["name"])
        target_name = _first_present(row, FIELD_ALIASES["assigned_target_name"])
        target_id = _first_present(row, FIELD_ALIASES["assigned_target_id"])
        return cls(
            id=int(raw_id),
            name=str(name).strip() if name is not None else "",
            has_secret_assigned=_as_bool(
                _first_present(row, FIELD_ALIASES["has_secret_assigned"])
            ),
            assigned_target_name=(str(target_name).strip() or None)
            if target_name is not None
            else None,
            assigned_target_id=int(target_id) if target_id is not None else None,
        )

    def to_json(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "has_secret_assigned": self.has_secret_assigned,
            "assigned_target_name": self.assigned_target_name,
            "assigned_target_id": self.assigned_target_id,
        }

    def to_json_str(self) -> str:
        return json.dumps(self.to_json(), ensure_ascii=False)

    def __str__(self) -> str:
        return self.name
