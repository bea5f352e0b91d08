"""Unit tests for single and series-wide edits and deletes"""

import uuid
import pytest
from datetime import date
from decimal import Decimal
from obligations_gateway.domain.exceptions import (
    BackendUnavailable,
    NotFoundError,
    PartialBatchFailure,
    ValidationError,
)
from obligations_gateway.domain.models import SETTLED, ObligationChanges, ObligationRequest
from obligations_gateway.domain.series_builder import create_obligations
from obligations_gateway.domain.series_mutations import (
    LookupKind,
    MutationScope,
    delete_obligation,
    edit_obligation,
    resolve_scope,
    resolve_series_members,
    series_lookup_for,
)

CARD_ID = uuid.uuid4()


def seed(store, factory, **overrides):
    return store.insert_many([factory(**overrides)])[0]


def seed_mixed_writer_series(store, factory):
    """A 3-part purchase whose rows were written by three different writers"""
    platform = seed(
        store,
        factory,
        description="Perfume - (1/3)",
        amount=Decimal("50.00"),
        expected_date=date(2024, 1, 5),
        card_id=CARD_ID,
        is_installment=True,
        installment_index=1,
        installment_count=3,
        installment_info={"index": 1, "count": 3, "original_amount": "150.00"},
    )
    rpc = seed(
        store,
        factory,
        description="Perfume (2/3)",
        amount=Decimal("50.00"),
        expected_date=date(2024, 2, 5),
        card_id=CARD_ID,
        is_installment="TRUE",
        installment_index=2,
        installment_count=3,
    )
    automation = seed(
        store,
        factory,
        description="Perfume - Parcela 3/3",
        amount=Decimal("50.00"),
        expected_date=date(2024, 3, 5),
        card_id=CARD_ID,
        is_installment="sim",
        installment_info="3/3",
    )
    return platform, rpc, automation


def create_series(store, **overrides):
    values = {
        "user_id": "user_1",
        "description": "Notebook",
        "amount": Decimal("400.00"),
        "direction": "outflow",
        "expected_date": date(2024, 1, 15),
        "category_id": "tech",
        "installment": True,
        "installment_count": 4,
    }
    values.update(overrides)
    return create_obligations(store, ObligationRequest(**values)).obligations


def test_resolve_scope_forces_single_for_non_series(new_obligation):
    assert resolve_scope(new_obligation(), MutationScope.SERIES) is MutationScope.SINGLE
    assert resolve_scope(new_obligation(is_recurring=True, periodicity="monthly"), MutationScope.SERIES) is MutationScope.SERIES
    assert resolve_scope(new_obligation(is_recurring=True), MutationScope.SINGLE) is MutationScope.SINGLE


def test_series_lookup_kind(new_obligation):
    assert series_lookup_for(new_obligation(series_id=uuid.uuid4())).kind is LookupKind.BY_SERIES_ID
    assert series_lookup_for(new_obligation()).kind is LookupKind.BY_CANONICAL_DESCRIPTION


def test_delete_single_leaves_identical_twin(memory_store, new_obligation):
    """Test deleting one plain obligation never touches a lookalike row"""
    first = seed(memory_store, new_obligation)
    twin = seed(memory_store, new_obligation)

    result = delete_obligation(memory_store, first.id, "user_1", MutationScope.SERIES)

    assert result.scope == "single"
    assert result.succeeded_ids == [first.id]
    assert list(memory_store.rows) == [twin.id]


def test_delete_one_shot_installment_forced_single(memory_store, new_obligation):
    """Test a count-1 installment purchase is deleted alone even with series scope"""
    purchase = seed(
        memory_store, new_obligation, description="Perfume - (1/1)", is_installment="sim", installment_info="1/1"
    )
    other = seed(
        memory_store, new_obligation, description="Perfume - (1/1)", is_installment="sim", installment_info="1/1"
    )

    result = delete_obligation(memory_store, purchase.id, "user_1", MutationScope.SERIES)

    assert result.scope == "single"
    assert other.id in memory_store.rows
    assert purchase.id not in memory_store.rows


def test_delete_series_across_writer_formats(memory_store, new_obligation):
    """Test rows from different writers are recognized as one series"""
    platform, rpc, automation = seed_mixed_writer_series(memory_store, new_obligation)
    lookalike = seed(memory_store, new_obligation, description="Perfume", amount=Decimal("50.00"), card_id=CARD_ID)
    shorter = seed(
        memory_store,
        new_obligation,
        description="Perfume - (1/2)",
        card_id=CARD_ID,
        is_installment=True,
        installment_index=1,
        installment_count=2,
    )
    other_user = seed(
        memory_store,
        new_obligation,
        user_id="user_2",
        description="Perfume (3/3)",
        card_id=CARD_ID,
        is_installment="TRUE",
        installment_index=3,
        installment_count=3,
    )

    result = delete_obligation(memory_store, rpc.id, "user_1", MutationScope.SERIES)

    assert result.ok
    assert result.scope == "series"
    assert result.succeeded_ids == [rpc.id, automation.id]
    assert set(memory_store.rows) == {platform.id, lookalike.id, shorter.id, other_user.id}


def test_delete_series_by_series_id(memory_store):
    instances = create_series(memory_store)

    result = delete_obligation(memory_store, instances[1].id, "user_1", MutationScope.SERIES)

    assert result.succeeded_ids == [i.id for i in instances[1:]]
    assert list(memory_store.rows) == [instances[0].id]


def test_delete_series_skips_settled_members(memory_store):
    instances = create_series(memory_store)
    memory_store.update(instances[2].id, {"status": SETTLED})

    result = delete_obligation(memory_store, instances[1].id, "user_1", MutationScope.SERIES)

    assert result.succeeded_ids == [instances[1].id, instances[3].id]
    assert set(memory_store.rows) == {instances[0].id, instances[2].id}


def test_delete_recurring_series_from_target_date(memory_store, new_obligation):
    """Test legacy recurring rows are matched by description and periodicity"""
    monthly = [
        seed(
            memory_store,
            new_obligation,
            description="Gym",
            expected_date=date(2024, month, 5),
            is_recurring="TRUE",
            periodicity="monthly",
        )
        for month in range(1, 7)
    ]
    weekly = seed(
        memory_store,
        new_obligation,
        description="Gym",
        expected_date=date(2024, 4, 1),
        is_recurring=True,
        periodicity="weekly",
    )

    result = delete_obligation(memory_store, monthly[2].id, "user_1", MutationScope.SERIES)

    assert result.succeeded_ids == [row.id for row in monthly[2:]]
    assert set(memory_store.rows) == {monthly[0].id, monthly[1].id, weekly.id}


def test_recurring_without_periodicity_is_mutated_alone(memory_store, new_obligation):
    """Test a legacy recurring row with no periodicity never reaches its lookalikes"""
    target = seed(
        memory_store,
        new_obligation,
        description="Gym",
        expected_date=date(2024, 3, 1),
        is_recurring=True,
        periodicity=None,
    )
    weekly = seed(
        memory_store,
        new_obligation,
        description="Gym",
        expected_date=date(2024, 4, 1),
        is_recurring=True,
        periodicity="weekly",
    )

    assert resolve_scope(target, MutationScope.SERIES) is MutationScope.SINGLE

    edited = edit_obligation(
        memory_store, target.id, "user_1", ObligationChanges(amount=Decimal("80.00")), MutationScope.SERIES
    )
    assert edited.scope == "single"
    assert weekly.amount == Decimal("100.00")

    result = delete_obligation(memory_store, target.id, "user_1", MutationScope.SERIES)

    assert result.scope == "single"
    assert result.succeeded_ids == [target.id]
    assert set(memory_store.rows) == {weekly.id}


def test_delete_settled_target_rejected(memory_store, new_obligation):
    settled = seed(memory_store, new_obligation, status=SETTLED, settled_on=date(2024, 3, 10))

    with pytest.raises(ValidationError):
        delete_obligation(memory_store, settled.id, "user_1")

    assert settled.id in memory_store.rows


def test_delete_unknown_or_foreign_target(memory_store, new_obligation):
    row = seed(memory_store, new_obligation)

    with pytest.raises(NotFoundError):
        delete_obligation(memory_store, uuid.uuid4(), "user_1")
    with pytest.raises(NotFoundError):
        delete_obligation(memory_store, row.id, "user_2")

    assert row.id in memory_store.rows


def test_delete_series_partial_failure(memory_store):
    """Test a short delete is reported with the ids that were and weren't removed"""
    instances = create_series(memory_store, installment_count=3)
    memory_store.max_deletes = 1

    with pytest.raises(PartialBatchFailure) as exc_info:
        delete_obligation(memory_store, instances[0].id, "user_1", MutationScope.SERIES)

    result = exc_info.value.result
    assert result.succeeded_ids == [instances[0].id]
    assert result.failed_ids == [instances[1].id, instances[2].id]
    assert set(memory_store.rows) == {instances[1].id, instances[2].id}


def test_resolve_series_members_orders_installments(memory_store, new_obligation):
    platform, rpc, automation = seed_mixed_writer_series(memory_store, new_obligation)

    members = resolve_series_members(memory_store, platform)

    assert [m.id for m in members] == [platform.id, rpc.id, automation.id]


def test_edit_single_changes_only_target(memory_store):
    instances = create_series(memory_store)

    result = edit_obligation(
        memory_store, instances[1].id, "user_1", ObligationChanges(amount=Decimal("90.00"))
    )

    assert result.scope == "single"
    assert [row.amount for row in instances] == [
        Decimal("100.00"),
        Decimal("90.00"),
        Decimal("100.00"),
        Decimal("100.00"),
    ]


def test_edit_installment_series_shifts_later_members(memory_store):
    """Test each member keeps its month offset from the edited installment"""
    instances = create_series(memory_store)

    result = edit_obligation(
        memory_store,
        instances[1].id,
        "user_1",
        ObligationChanges(amount=Decimal("99.00"), expected_date=date(2024, 2, 20)),
        MutationScope.SERIES,
    )

    assert result.ok
    assert result.scope == "series"
    assert [row.expected_date for row in instances] == [
        date(2024, 1, 15),
        date(2024, 2, 20),
        date(2024, 3, 20),
        date(2024, 4, 20),
    ]
    assert [row.amount for row in instances] == [Decimal("100.00")] + [Decimal("99.00")] * 3
    assert [row.installment_index for row in instances] == [1, 2, 3, 4]


def test_edit_legacy_installment_series(memory_store, new_obligation):
    platform, rpc, automation = seed_mixed_writer_series(memory_store, new_obligation)

    edit_obligation(
        memory_store, rpc.id, "user_1", ObligationChanges(expected_date=date(2024, 5, 31)), MutationScope.SERIES
    )

    assert platform.expected_date == date(2024, 1, 5)
    assert rpc.expected_date == date(2024, 5, 31)
    assert automation.expected_date == date(2024, 6, 30)
    assert automation.expected_month == "2024-06"


def test_edit_recurring_series_restepped(memory_store):
    """Test recurring members are re-stepped from the new date by position"""
    instances = create_series(
        memory_store,
        description="Yoga",
        amount=Decimal("30.00"),
        expected_date=date(2024, 1, 1),
        installment=False,
        installment_count=None,
        recurring=True,
        periodicity="weekly",
        series_end_date=date(2024, 1, 29),
    )

    result = edit_obligation(
        memory_store,
        instances[2].id,
        "user_1",
        ObligationChanges(expected_date=date(2024, 1, 17)),
        MutationScope.SERIES,
    )

    assert result.requested == 3
    assert [row.expected_date for row in instances] == [
        date(2024, 1, 1),
        date(2024, 1, 8),
        date(2024, 1, 17),
        date(2024, 1, 24),
        date(2024, 1, 31),
    ]


def test_edit_series_without_date_keeps_dates(memory_store):
    instances = create_series(memory_store)

    edit_obligation(
        memory_store, instances[2].id, "user_1", ObligationChanges(description="Laptop"), MutationScope.SERIES
    )

    assert [row.description for row in instances] == ["Notebook", "Notebook", "Laptop", "Laptop"]
    assert [row.expected_date for row in instances] == [date(2024, m, 15) for m in range(1, 5)]


def test_edit_without_changes_rejected(memory_store, new_obligation):
    row = seed(memory_store, new_obligation)

    with pytest.raises(ValidationError):
        edit_obligation(memory_store, row.id, "user_1", ObligationChanges())


def test_edit_settled_target_rejected(memory_store, new_obligation):
    row = seed(memory_store, new_obligation, status=SETTLED)

    with pytest.raises(ValidationError):
        edit_obligation(memory_store, row.id, "user_1", ObligationChanges(amount=Decimal("1.00")))

    assert memory_store.update_calls == 0


def test_edit_series_partial_failure(memory_store):
    """Test a failure midway leaves earlier updates applied and lists the rest"""
    instances = create_series(memory_store)
    memory_store.fail_update_on_call = 3

    with pytest.raises(PartialBatchFailure) as exc_info:
        edit_obligation(
            memory_store, instances[0].id, "user_1", ObligationChanges(amount=Decimal("80.00")), MutationScope.SERIES
        )

    result = exc_info.value.result
    assert result.succeeded_ids == [instances[0].id, instances[1].id]
    assert result.failed_ids == [instances[2].id, instances[3].id]
    assert [row.amount for row in instances] == [Decimal("80.00")] * 2 + [Decimal("100.00")] * 2


def test_edit_series_first_update_fails(memory_store):
    instances = create_series(memory_store)
    memory_store.fail_update_on_call = 1

    with pytest.raises(BackendUnavailable):
        edit_obligation(
            memory_store, instances[0].id, "user_1", ObligationChanges(amount=Decimal("80.00")), MutationScope.SERIES
        )

    assert all(row.amount == Decimal("100.00") for row in instances)
