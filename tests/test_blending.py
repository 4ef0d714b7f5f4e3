from datetime import datetime, timezone

import pytest

from cellar.core.blending import (
    composition_percentage, current_tank_volume, plan_plot_assignment, plan_wine_removal,
)
from cellar.core.records import (
    GrapeCompositionRecord, PlotRecord, PlotTankRecord, TankRecord, TankStatus,
)
from cellar.exceptions import ValidationError

HARVEST = datetime(2024, 9, 15)


@pytest.fixture
def empty_tank():
    return TankRecord(id=1, name='Cuve 01', capacity=100)


@pytest.fixture
def merlot_plot():
    return PlotRecord(id=7, name='Clos du Moulin', surface=2, grape_variety='MERLOT')


def composition(variety, volume, capacity=100):
    return GrapeCompositionRecord(
        tank_id=1, grape_variety=variety, volume=volume, percentage=volume / capacity * 100
    )


def test_merlot_harvest_fills_empty_tank(empty_tank, merlot_plot):
    assignment = plan_plot_assignment(empty_tank, merlot_plot, 80, 60, harvest_date=HARVEST)

    assert assignment.composition.grape_variety == 'MERLOT'
    assert assignment.composition.volume == 80
    assert assignment.composition.percentage == 80
    assert assignment.composition_created
    assert assignment.new_status == TankStatus.IN_USE
    assert assignment.filling_action.type_name == 'REMPLISSAGE'
    assert assignment.filling_action.started_at == HARVEST
    assert assignment.filling_action.finished_at == HARVEST
    assert assignment.plot_tank == PlotTankRecord(plot_id=7, tank_id=1, volume=80, harvest_date=HARVEST)


def test_assignment_defaults_to_naive_utc_now(empty_tank, merlot_plot):
    before = datetime.now(timezone.utc).replace(tzinfo=None)

    assignment = plan_plot_assignment(empty_tank, merlot_plot, 10, 60)

    after = datetime.now(timezone.utc).replace(tzinfo=None)
    started_at = assignment.filling_action.started_at
    assert started_at.tzinfo is None
    assert before <= started_at <= after
    assert assignment.composition.added_at == started_at


def test_existing_variety_accumulates(empty_tank, merlot_plot):
    existing = [composition('MERLOT', 30), composition('SYRAH', 20)]
    tank = TankRecord(id=1, name='Cuve 01', capacity=100, status=TankStatus.IN_USE)

    assignment = plan_plot_assignment(tank, merlot_plot, 25, 60, compositions=existing, now=HARVEST)

    assert not assignment.composition_created
    assert assignment.composition.volume == 55
    assert assignment.composition.percentage == pytest.approx(55)
    assert assignment.new_status == TankStatus.IN_USE


def test_total_composition_grows_by_assigned_volume(merlot_plot):
    tank = TankRecord(id=1, name='Cuve 01', capacity=150, status=TankStatus.IN_USE)
    existing = [composition('MERLOT', 12.5, 150), composition('GAMAY', 40, 150)]
    before = sum(c.volume for c in existing)

    assignment = plan_plot_assignment(tank, merlot_plot, 33.3, 60, compositions=existing)

    after = [c for c in existing if c.grape_variety != 'MERLOT'] + [assignment.composition]
    assert sum(c.volume for c in after) - before == pytest.approx(33.3, abs=1e-6)
    assert assignment.composition.percentage == pytest.approx(45.8 / 150 * 100)


def test_maintenance_tank_keeps_its_status(merlot_plot):
    tank = TankRecord(id=1, name='Cuve 01', capacity=100, status=TankStatus.MAINTENANCE)

    assert plan_plot_assignment(tank, merlot_plot, 10, 60).new_status == TankStatus.MAINTENANCE


def test_current_tank_volume_is_transferred_minus_classified():
    plot_tanks = [PlotTankRecord(7, 1, 60), PlotTankRecord(8, 1, 30)]
    compositions = [composition('MERLOT', 50)]

    assert current_tank_volume(plot_tanks, compositions) == 40


def test_capacity_rejection_reports_available_capacity(empty_tank, merlot_plot):
    plot_tanks = [PlotTankRecord(7, 1, 70)]

    with pytest.raises(ValidationError) as exc:
        plan_plot_assignment(empty_tank, merlot_plot, 40, 60, plot_tanks=plot_tanks)

    assert '30.0 hL' in exc.value.message
    assert exc.value.payload['limit'] == 30


def test_plot_yield_cap(empty_tank, merlot_plot):
    big_tank = TankRecord(id=1, name='Foudre', capacity=500)

    with pytest.raises(ValidationError) as exc:
        plan_plot_assignment(big_tank, merlot_plot, 121, 60)

    assert '120.0 hL' in exc.value.message
    assert plan_plot_assignment(big_tank, merlot_plot, 120, 60).composition.volume == 120


@pytest.mark.parametrize('volume', [0, -5, None])
def test_non_positive_volume_rejected(empty_tank, merlot_plot, volume):
    with pytest.raises(ValidationError):
        plan_plot_assignment(empty_tank, merlot_plot, volume, 60)


def test_composition_percentage_zero_capacity():
    assert composition_percentage(10, 0) == 0


def test_proportional_removal():
    tank = TankRecord(id=1, name='Cuve 01', capacity=100, status=TankStatus.IN_USE)
    compositions = [composition('MERLOT', 60), composition('SYRAH', 20)]

    removal = plan_wine_removal(tank, compositions, 40)

    remaining = {c.grape_variety: c for c in removal.compositions}
    assert remaining['MERLOT'].volume == pytest.approx(30)
    assert remaining['SYRAH'].volume == pytest.approx(10)
    assert remaining['MERLOT'].percentage == pytest.approx(30)
    assert removal.used_volume == 80
    assert removal.new_status == TankStatus.IN_USE
    assert not removal.empties_tank


def test_removing_everything_puts_tank_in_maintenance():
    tank = TankRecord(id=1, name='Cuve 01', capacity=100, status=TankStatus.IN_USE)

    removal = plan_wine_removal(tank, [composition('MERLOT', 45), composition('SYRAH', 15)], 60)

    assert removal.compositions == ()
    assert removal.new_status == TankStatus.MAINTENANCE
    assert removal.empties_tank


def test_removal_beyond_content_rejected():
    tank = TankRecord(id=1, name='Cuve 01', capacity=100, status=TankStatus.IN_USE)

    with pytest.raises(ValidationError) as exc:
        plan_wine_removal(tank, [composition('MERLOT', 45)], 50)

    assert exc.value.payload['limit'] == 45
