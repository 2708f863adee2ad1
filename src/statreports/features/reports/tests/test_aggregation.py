from decimal import Decimal

import pytest

from ..aggregation import (
    NOT_SIGNIFICANT,
    AggregateTotals,
    AmountKind,
    RawRow,
    aggregate,
    check_sorted,
    normalize_amount,
    period_key,
    period_label,
)
from ..exceptions import UnsortedInputError
from ..periods import Period


def row(name, year, quarter, amount, entity_id=1, sub=None, sub_id=None):
    return RawRow(
        entity_id=entity_id,
        entity_name=name,
        period=Period(year, quarter),
        amount=None if amount is None else Decimal(str(amount)),
        sub_entity_id=sub_id,
        sub_entity_name=sub,
    )


def test_single_entity_with_zero_quarter():
    rows = [row("ProductX", 2023, 1, 100), row("ProductX", 2023, 2, 0), row("ProductX", 2023, 3, 50)]

    [breakdown] = aggregate(rows)

    assert [(p.label, p.amount) for p in breakdown.points] == [
        ("2023/Q1", Decimal(100)),
        ("Q2", NOT_SIGNIFICANT),
        ("Q3", Decimal(50)),
    ]
    assert breakdown.yearly_totals == {2023: Decimal(150)}


def test_period_label_only_first_quarter_carries_year():
    assert period_label(Period(2023, 1)) == "2023/Q1"
    assert period_label(Period(2023, 4)) == "Q4"
    assert period_key(Period(2023, 4)) == "2023/Q4"


def test_entities_split_on_name_change_in_input_order():
    rows = [
        row("Alpha", 2021, 1, 1, entity_id=10),
        row("Alpha", 2021, 2, 2, entity_id=10),
        row("Beta", 2021, 1, 3, entity_id=20),
    ]
    breakdowns = aggregate(rows)
    assert [(b.entity_id, b.name, len(b.points)) for b in breakdowns] == [(10, "Alpha", 2), (20, "Beta", 1)]


def test_empty_input_gives_no_breakdowns():
    assert aggregate([]) == []


def test_null_amounts_are_not_significant_and_excluded():
    [breakdown] = aggregate([row("A", 2021, 1, None), row("A", 2021, 2, 5)])
    assert breakdown.points[0].amount is NOT_SIGNIFICANT
    assert not breakdown.points[0].is_significant
    assert breakdown.yearly_totals == {2021: Decimal(5)}


def test_entity_with_only_insignificant_rows_keeps_its_points():
    [breakdown] = aggregate([row("A", 2021, 1, 0), row("A", 2021, 2, None)])
    assert len(breakdown.points) == 2
    assert breakdown.yearly_totals == {}


def test_yearly_totals_equal_sum_of_significant_points():
    rows = [row("A", y, q, y + q) for y in (2020, 2021) for q in (1, 2, 3, 4)]
    [breakdown] = aggregate(rows)
    for year, total in breakdown.yearly_totals.items():
        assert total == sum(p.amount for p in breakdown.points if p.period.year == year and p.is_significant)


def test_aggregate_totals_sum_over_entities():
    rows = [
        row("A", 2021, 1, 10, entity_id=1),
        row("A", 2022, 1, 0, entity_id=1),
        row("B", 2021, 1, 5, entity_id=2),
        row("B", 2022, 1, 7, entity_id=2),
    ]
    totals = AggregateTotals()
    breakdowns = aggregate(rows, totals=totals)
    assert totals.yearly == {2021: Decimal(15), 2022: Decimal(7)}
    assert totals.per_period == {Period(2021, 1): Decimal(15), Period(2022, 1): Decimal(7)}
    for year, total in totals.yearly.items():
        assert total == sum(b.yearly_totals.get(year, Decimal(0)) for b in breakdowns)


def test_sub_entities_nest_under_their_parent():
    rows = [
        row("Ethylene", 2021, 1, 300, sub="Germany", sub_id=2),
        row("Ethylene", 2021, 2, 0, sub="Germany", sub_id=2),
        row("Ethylene", 2021, 1, 200, sub="Poland", sub_id=1),
        row("Polyethylene", 2021, 1, 150, entity_id=2, sub="Germany", sub_id=2),
    ]
    ethylene, polyethylene = aggregate(rows)

    assert [c.name for c in ethylene.children] == ["Germany", "Poland"]
    assert ethylene.points == []
    assert ethylene.yearly_totals == {2021: Decimal(500)}
    assert ethylene.period_totals == {Period(2021, 1): Decimal(500)}
    assert ethylene.children[0].yearly_totals == {2021: Decimal(300)}
    assert [b.name for b in ethylene.series()] == ["Germany", "Poland"]
    assert polyethylene.children[0].entity_id == 2


def test_same_sub_entity_name_under_new_parent_starts_a_new_child():
    rows = [
        row("A", 2021, 1, 1, entity_id=1, sub="X", sub_id=9),
        row("B", 2021, 1, 2, entity_id=2, sub="X", sub_id=9),
    ]
    a, b = aggregate(rows)
    assert len(a.children) == 1 and len(b.children) == 1
    assert b.children[0].yearly_totals == {2021: Decimal(2)}


def test_same_named_entities_with_distinct_ids_stay_apart():
    rows = [
        row("Orlen", 2021, 1, 100, entity_id=1),
        row("Orlen", 2021, 2, 110, entity_id=1),
        row("Orlen", 2021, 1, 7, entity_id=4),
    ]
    plock, wloclawek = aggregate(rows)

    assert (plock.entity_id, len(plock.points)) == (1, 2)
    assert (wloclawek.entity_id, len(wloclawek.points)) == (4, 1)
    assert wloclawek.yearly_totals == {2021: Decimal(7)}


def test_same_named_sub_entities_with_distinct_ids_stay_apart():
    rows = [
        row("Ethylene", 2021, 1, 100, sub="Orlen", sub_id=1),
        row("Ethylene", 2021, 1, 7, sub="Orlen", sub_id=4),
    ]
    [ethylene] = aggregate(rows)

    assert [c.entity_id for c in ethylene.children] == [1, 4]
    assert ethylene.period_totals == {Period(2021, 1): Decimal(107)}


def test_rows_out_of_id_order_within_a_name_are_rejected():
    with pytest.raises(UnsortedInputError):
        check_sorted([row("Orlen", 2021, 1, 1, entity_id=4), row("Orlen", 2021, 1, 1, entity_id=1)])


def test_parent_totals_keep_periods_where_every_child_is_not_significant():
    rows = [
        row("Ethylene", 2021, 1, 500, sub="Orlen", sub_id=1),
        row("Ethylene", 2021, 1, 5, sub="Sibur", sub_id=3),
        row("Ethylene", 2021, 3, 0, sub="Sibur", sub_id=3),
    ]
    [ethylene] = aggregate(rows)

    assert [(p.period, p.amount) for p in ethylene.total_points()] == [
        (Period(2021, 1), Decimal(505)),
        (Period(2021, 3), NOT_SIGNIFICANT),
    ]
    assert ethylene.yearly_totals == {2021: Decimal(505)}


def test_monetary_amounts_round_half_up_to_cents():
    assert normalize_amount(Decimal("10.005"), AmountKind.MONETARY) == Decimal("10.01")
    assert normalize_amount(Decimal("-0.125"), AmountKind.MONETARY) == Decimal("-0.13")


def test_tonnage_amounts_truncate():
    assert normalize_amount(Decimal("100.9"), AmountKind.TONNAGE) == Decimal(100)
    # Judged on the raw value, so a small positive amount is a numeric zero, not the sentinel.
    assert normalize_amount(Decimal("0.4"), AmountKind.TONNAGE) == Decimal(0)


def test_measured_tonnage_keeps_two_decimals():
    assert normalize_amount(Decimal("12.75"), AmountKind.MEASURED_TONNAGE) == Decimal("12.75")
    assert normalize_amount(Decimal("0.6"), AmountKind.MEASURED_TONNAGE) == Decimal("0.60")
    assert normalize_amount(Decimal("10.456"), AmountKind.MEASURED_TONNAGE) == Decimal("10.46")


def test_zero_and_missing_become_sentinel():
    assert normalize_amount(None, AmountKind.TONNAGE) is NOT_SIGNIFICANT
    assert normalize_amount(0, AmountKind.MONETARY) is NOT_SIGNIFICANT
    assert normalize_amount(Decimal("0.000"), AmountKind.TONNAGE) is NOT_SIGNIFICANT
    assert str(NOT_SIGNIFICANT) == "n/s"


def test_negative_amounts_count_towards_totals():
    [breakdown] = aggregate([row("Profit", 2021, 1, "1.25"), row("Profit", 2021, 2, "-0.5")], AmountKind.MONETARY)
    assert breakdown.yearly_totals == {2021: Decimal("0.75")}


def test_unsorted_rows_are_rejected():
    rows = [row("B", 2021, 1, 1), row("A", 2021, 1, 1)]
    with pytest.raises(UnsortedInputError) as excinfo:
        aggregate(rows)
    assert excinfo.value.details == {"row": 1}


def test_unsorted_periods_within_entity_are_rejected():
    with pytest.raises(UnsortedInputError):
        check_sorted([row("A", 2021, 3, 1), row("A", 2021, 2, 1)])
