"""Exclusion rules deciding whom an actor may draw."""

from __future__ import annotations

from typing import Iterable, Sequence

from ..models.participant import Participant


def taken_target_ids(participants: Iterable[Participant]) -> set[int]:
    """Return the ids of every participant already drawn by someone.

    Rows written before target ids were stored only carry the target's name;
    those are resolved against the snapshot by name, which takes every
    participant sharing that name.
    """
    participants = list(participants)
    taken: set[int] = set()
    legacy_names: set[str] = set()
    for participant in participants:
        if not participant.has_secret_assigned:
            continue
        if participant.assigned_target_id is not None:
            taken.add(participant.assigned_target_id)
        elif participant.assigned_target_name:
            legacy_names.add(participant.assigned_target_name)

    if legacy_names:
        taken.update(p.id for p in participants if p.name in legacy_names)
    return taken


def eligible_targets(
    participants: Sequence[Participant], actor: Participant
) -> list[Participant]:
    """Return the participants ``actor`` may draw, in snapshot order.

    A participant is eligible when it is not the actor and nobody has drawn it
    yet. An actor who already holds a secret is computed like any other;
    blocking a second draw is up to the caller.

    Parameters
    ----------
    participants : Sequence[Participant]
        Full current snapshot.
    actor : Participant
        The participant about to draw. Must belong to ``participants``.

    Raises
    ------
    ValueError
        If ``actor`` is not part of the snapshot.
    """
    if not any(p.id == actor.id for p in participants):
        raise ValueError(f"Participant {actor.id} is not part of the snapshot")

    taken = taken_target_ids(participants)
    return [p for p in participants if p.id != actor.id and p.id not in taken]


__all__ = ["eligible_targets", "taken_target_ids"]
