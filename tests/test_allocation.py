import pytest

from cellar.core.allocation import (
    aggregate_batch_allocations, calculate_batch_allocation, collect_batch_tanks,
    find_available_tanks, format_allocation_progress, plan_batch_allocation,
    suggest_optimal_allocation,
)
from cellar.core.records import (
    AllocationMode, AllocationPolicy, BatchRecord, TankBatchRecord, TankRecord,
)
from cellar.exceptions import ValidationError


@pytest.fixture
def batch():
    return BatchRecord(id=1, name='Cuvée Prestige', quantity=300)


def tank(id, capacity, allocated=0.0, batch_id=None):
    return TankRecord(id=id, name=f'Cuve {id:02d}', capacity=capacity,
                      allocated_volume=allocated, batch_id=batch_id)


def test_allocated_volume_is_sum_of_tank_volumes(batch):
    allocation = calculate_batch_allocation(batch, [tank(1, 100, 80), tank(2, 200, 120)])

    assert allocation.allocated_volume == 200
    assert allocation.remaining_volume == 100
    assert allocation.allocated_volume + allocation.remaining_volume == batch.quantity
    assert allocation.progress_percentage == 67
    assert not allocation.is_fully_allocated


def test_tank_utilization_percentage(batch):
    allocation = calculate_batch_allocation(batch, [tank(1, 100, 25)])

    assert allocation.tanks[0].utilization_percentage == 25
    assert allocation.tanks[0].name == 'Cuve 01'


def test_fully_allocated_batch(batch):
    allocation = calculate_batch_allocation(batch, [tank(1, 300, 300)])

    assert allocation.is_fully_allocated
    assert allocation.remaining_volume == 0
    assert allocation.progress_percentage == 100


def test_over_allocation_clamps_remaining_to_zero(batch):
    allocation = calculate_batch_allocation(batch, [tank(1, 400, 350)])

    assert allocation.remaining_volume == 0
    assert allocation.is_fully_allocated


def test_zero_quantity_batch_yields_zero_percent():
    empty = BatchRecord(id=2, name='Vide', quantity=0)
    allocation = calculate_batch_allocation(empty, [tank(1, 0, 0)])

    assert allocation.progress_percentage == 0
    assert allocation.tanks[0].utilization_percentage == 0


def test_percentage_stays_within_bounds(batch):
    for allocated in (0, 1, 150, 299, 300):
        allocation = calculate_batch_allocation(batch, [tank(1, 300, allocated)])
        assert 0 <= allocation.progress_percentage <= 100


def test_to_dict_uses_camel_case_keys(batch):
    data = calculate_batch_allocation(batch, [tank(1, 100, 50)]).to_dict()

    assert data['allocatedVolume'] == 50
    assert data['remainingVolume'] == 250
    assert data['tanks'][0]['utilizationPercentage'] == 50


def test_find_available_tanks_best_fit_sorts_ascending():
    tanks = [tank(1, 200), tank(2, 80), tank(3, 120), tank(4, 500, batch_id=9)]

    found = find_available_tanks(tanks, 100)

    assert [t.id for t in found] == [3, 1]


def test_find_available_tanks_worst_fit_sorts_descending():
    tanks = [tank(1, 200), tank(2, 80), tank(3, 120)]

    found = find_available_tanks(tanks, 50, AllocationPolicy.WORST_FIT)

    assert [t.id for t in found] == [1, 3, 2]


def test_suggestion_fills_largest_tanks_first():
    tanks = [tank(1, 100), tank(2, 200), tank(3, 50, allocated=20)]

    suggestions = suggest_optimal_allocation(250, tanks)

    assert [(s.tank_id, s.suggested_volume) for s in suggestions] == [(2, 200), (1, 50)]


def test_suggestion_stops_when_tanks_exhausted():
    suggestions = suggest_optimal_allocation(1000, [tank(1, 100), tank(2, 50, allocated=10)])

    assert sum(s.suggested_volume for s in suggestions) == 140


def test_suggestion_skips_claimed_tanks():
    suggestions = suggest_optimal_allocation(100, [tank(1, 500, batch_id=3), tank(2, 60)])

    assert [s.tank_id for s in suggestions] == [2]
    assert suggestions[0].to_dict() == {'tankId': 2, 'tankName': 'Cuve 02', 'suggestedVolume': 60}


def test_format_allocation_progress(batch):
    pending = calculate_batch_allocation(batch, [])
    partial = calculate_batch_allocation(batch, [tank(1, 100, 100)])
    done = calculate_batch_allocation(batch, [tank(1, 300, 300)])

    assert format_allocation_progress(pending).startswith('⏳')
    assert '剩余 200' in format_allocation_progress(partial)
    assert format_allocation_progress(done).startswith('✅')


def test_collect_batch_tanks_single_mode():
    tanks = [tank(1, 100, 60, batch_id=1), tank(2, 100, 40, batch_id=2)]

    views = collect_batch_tanks(1, tanks, AllocationMode.SINGLE)

    assert [t.id for t in views] == [1]


def test_collect_batch_tanks_multi_mode_uses_link_volume():
    tanks = [tank(1, 100, 90), tank(2, 200, 0)]
    links = [TankBatchRecord(1, 1, 30), TankBatchRecord(1, 2, 60), TankBatchRecord(2, 1, 45)]

    views = collect_batch_tanks(1, tanks, AllocationMode.MULTI, links)

    assert [(t.id, t.allocated_volume) for t in views] == [(1, 30), (2, 45)]


def test_aggregate_batch_allocations():
    tanks = [tank(1, 100, 60, batch_id=1), tank(2, 100, 40, batch_id=1), tank(3, 100, 10, batch_id=2), tank(4, 50)]

    assert aggregate_batch_allocations(tanks) == {1: 100, 2: 10}


def test_plan_batch_allocation_accepts_valid_volume(batch):
    allocation = calculate_batch_allocation(batch, [])

    planned = plan_batch_allocation(allocation, tank(5, 100, 20), 50)

    assert planned == TankBatchRecord(tank_id=5, batch_id=1, volume=50)


@pytest.mark.parametrize('volume', [0, -10])
def test_plan_batch_allocation_rejects_non_positive_volume(batch, volume):
    with pytest.raises(ValidationError):
        plan_batch_allocation(calculate_batch_allocation(batch, []), tank(5, 100), volume)


def test_plan_batch_allocation_reports_available_capacity(batch):
    with pytest.raises(ValidationError) as exc:
        plan_batch_allocation(calculate_batch_allocation(batch, []), tank(5, 100, 70), 50)

    assert '30.0 hL' in exc.value.message
    assert exc.value.payload['limit'] == 30


def test_plan_batch_allocation_rejects_more_than_remaining():
    small = BatchRecord(id=1, name='Petite', quantity=40)

    with pytest.raises(ValidationError) as exc:
        plan_batch_allocation(calculate_batch_allocation(small, []), tank(5, 100), 50)

    assert exc.value.payload['limit'] == 40
