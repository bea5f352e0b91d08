"""Edit and delete obligations, either alone or together with the later instances of their series"""

import uuid
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import List, Optional, Tuple

from obligations_gateway.domain.exceptions import (
    BackendUnavailable,
    NotFoundError,
    PartialBatchFailure,
    ValidationError,
)
from obligations_gateway.domain.models import PENDING, BatchResult, ObligationChanges, ObligationInstance
from obligations_gateway.domain.schedule import parse_periodicity, step
from obligations_gateway.domain.series_identity import (
    canonicalize,
    installment_flag,
    is_installment_series,
    is_true_series,
    resolve_installment_position,
)
from obligations_gateway.infrastructure.store import ObligationQuery, ObligationStore
from obligations_gateway.utils.date_utils import add_months


class MutationScope(str, Enum):
    SINGLE = "single"
    SERIES = "series"


class LookupKind(str, Enum):
    BY_SERIES_ID = "by_series_id"
    BY_CANONICAL_DESCRIPTION = "by_canonical_description"


@dataclass
class SeriesLookup:
    """How to find the rest of a target's series"""

    kind: LookupKind
    installment: bool
    target: ObligationInstance


def resolve_scope(target: ObligationInstance, requested: MutationScope) -> MutationScope:
    """Series scope only applies to true series; everything else is single"""
    if requested is not MutationScope.SERIES or not is_true_series(target):
        return MutationScope.SINGLE
    # Legacy recurring rows are grouped by periodicity; without one there is no group
    if not target.series_id and not is_installment_series(target) and not target.periodicity:
        return MutationScope.SINGLE
    return MutationScope.SERIES


def _target_index(target: ObligationInstance) -> int:
    index, _ = resolve_installment_position(target)
    return index or 1


def series_lookup_for(target: ObligationInstance) -> SeriesLookup:
    kind = LookupKind.BY_SERIES_ID if target.series_id else LookupKind.BY_CANONICAL_DESCRIPTION
    return SeriesLookup(kind=kind, installment=is_installment_series(target), target=target)


def _candidates_by_series_id(store: ObligationStore, lookup: SeriesLookup) -> List[ObligationInstance]:
    target = lookup.target
    return store.find(ObligationQuery(user_id=target.user_id, series_id=target.series_id))


def _candidates_by_description(store: ObligationStore, lookup: SeriesLookup) -> List[ObligationInstance]:
    target = lookup.target

    if lookup.installment:
        # Flags and counts are unreliable across writers, so filter here
        rows = store.find(ObligationQuery(user_id=target.user_id, card_id=target.card_id))
        base = canonicalize(target.description)
        _, count = resolve_installment_position(target)
        return [
            row
            for row in rows
            if canonicalize(row.description) == base and resolve_installment_position(row)[1] == count
        ]

    rows = store.find(
        ObligationQuery(
            user_id=target.user_id,
            description=target.description,
            is_recurring=True,
            periodicity=target.periodicity,
            expected_from=target.expected_date,
        )
    )
    return [
        row
        for row in rows
        if installment_flag(row.is_recurring) and target.periodicity and row.periodicity == target.periodicity
    ]


_CANDIDATE_FETCHERS = {
    LookupKind.BY_SERIES_ID: _candidates_by_series_id,
    LookupKind.BY_CANONICAL_DESCRIPTION: _candidates_by_description,
}


def resolve_series_members(store: ObligationStore, target: ObligationInstance) -> List[ObligationInstance]:
    """
    Pending instances from `target` onward in its series, in series order.

    Installments are kept from the target's index upward and ordered by index;
    recurring instances are kept from the target's date onward and ordered by
    date. The target itself is always the first member.
    """
    lookup = series_lookup_for(target)
    candidates = [row for row in _CANDIDATE_FETCHERS[lookup.kind](store, lookup) if row.status == PENDING]

    if lookup.installment:
        target_index = _target_index(target)
        indexed = []
        for row in candidates:
            index, _ = resolve_installment_position(row)
            if index is not None and index >= target_index:
                indexed.append((index, row))
        indexed.sort(key=lambda item: (item[0], item[1].expected_date))
        members = [row for _, row in indexed]
    else:
        members = sorted(
            (row for row in candidates if row.expected_date >= target.expected_date),
            key=lambda row: row.expected_date,
        )

    if not any(row.id == target.id for row in members):
        members.insert(0, target)
    return members


def _load_target(store: ObligationStore, obligation_id: uuid.UUID, user_id: str) -> ObligationInstance:
    target = store.get(obligation_id)
    if target is None or target.user_id != user_id:
        raise NotFoundError(f"Obligation {obligation_id} not found")
    if target.status != PENDING:
        raise ValidationError(f"Obligation {obligation_id} is {target.status} and can no longer change")
    return target


def _reschedule(
    target: ObligationInstance,
    members: List[ObligationInstance],
    new_anchor: Optional[date],
) -> List[Tuple[ObligationInstance, Optional[date]]]:
    """Pair each member with its new date (None keeps the stored date)"""
    if new_anchor is None:
        return [(member, None) for member in members]

    if is_installment_series(target):
        target_index = _target_index(target)
        return [
            (member, add_months(new_anchor, (resolve_installment_position(member)[0] or target_index) - target_index))
            for member in members
        ]

    periodicity = parse_periodicity(target.periodicity)
    return [(member, new_anchor + step(periodicity, i)) for i, member in enumerate(members)]


def _apply_updates(
    store: ObligationStore,
    plan: List[Tuple[ObligationInstance, Optional[date]]],
    shared: dict,
    result: BatchResult,
) -> BatchResult:
    """Update members one call at a time, earliest first; stop at the first failure"""
    for position, (member, new_date) in enumerate(plan):
        values = dict(shared)
        if new_date is not None:
            values["expected_date"] = new_date
        try:
            updated = store.update(member.id, values)
        except (BackendUnavailable, NotFoundError) as e:
            if not result.succeeded_ids:
                raise
            result.failed_ids = [pending.id for pending, _ in plan[position:]]
            raise PartialBatchFailure(result, str(e)) from e
        result.succeeded_ids.append(updated.id)
        result.obligations.append(updated)
    return result


def edit_obligation(
    store: ObligationStore,
    obligation_id: uuid.UUID,
    user_id: str,
    changes: ObligationChanges,
    scope: MutationScope = MutationScope.SINGLE,
) -> BatchResult:
    """
    Edit one obligation, or it and the later instances of its series.

    Series edits shift every member by the move applied to the target:
    installments keep their month offset from the target's index, recurring
    instances are re-stepped from the new date by their position. Other
    fields are applied uniformly; installment indexes never change.

    Raises:
        NotFoundError: Target missing or owned by another user
        ValidationError: Target not pending, or nothing to change
        BackendUnavailable: First update failed (nothing written)
        PartialBatchFailure: A later update failed; earlier ones stay applied
    """
    shared = changes.shared_values()
    if not shared and changes.expected_date is None:
        raise ValidationError("no changes requested")

    target = _load_target(store, obligation_id, user_id)
    effective = resolve_scope(target, scope)

    if effective is MutationScope.SINGLE:
        plan = [(target, changes.expected_date)]
    else:
        plan = _reschedule(target, resolve_series_members(store, target), changes.expected_date)

    result = BatchResult(operation="edit", requested=len(plan), scope=effective.value)
    return _apply_updates(store, plan, shared, result)


def delete_obligation(
    store: ObligationStore,
    obligation_id: uuid.UUID,
    user_id: str,
    scope: MutationScope = MutationScope.SINGLE,
) -> BatchResult:
    """
    Delete one obligation, or it and the later instances of its series.

    A non-series target is always deleted by identifier alone, whatever
    scope was asked for, so lookalike rows are never touched.

    Raises:
        NotFoundError: Target missing or owned by another user
        ValidationError: Target not pending
        PartialBatchFailure: Backend removed fewer rows than selected
    """
    target = _load_target(store, obligation_id, user_id)
    effective = resolve_scope(target, scope)

    if effective is MutationScope.SINGLE:
        ids = [target.id]
    else:
        ids = [member.id for member in resolve_series_members(store, target)]

    result = BatchResult(operation="delete", requested=len(ids), scope=effective.value)
    deleted = set(store.delete_many(ids))
    result.succeeded_ids = [row_id for row_id in ids if row_id in deleted]
    result.failed_ids = [row_id for row_id in ids if row_id not in deleted]

    if result.failed_ids:
        raise PartialBatchFailure(result, "backend removed fewer rows than selected")
    return result
