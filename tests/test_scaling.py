import pytest

from cellar.core.records import ConsumableRecord
from cellar.core.rounding import percentage, round_half_up
from cellar.core.scaling import (
    apply_scaling, calculate_scaled_quantities, canonical_quantity, format_scaled_consumable,
    restore_original_quantities,
)


@pytest.fixture
def consumables():
    return [
        ConsumableRecord(id=1, name='SO2', unit='g', quantity=10),
        ConsumableRecord(id=2, name='Bentonite', unit='kg', quantity=3.2),
    ]


def test_scale_by_volume_ratio(consumables):
    scaled = calculate_scaled_quantities(consumables, 100, 150)

    assert [s.scaled_quantity for s in scaled] == [15, 4.8]
    assert [s.original_quantity for s in scaled] == [10, 3.2]


def test_scaled_quantity_has_two_decimals():
    scaled = calculate_scaled_quantities([ConsumableRecord('Tanin', 'g', 1)], 3, 1)

    assert scaled[0].scaled_quantity == 0.33


@pytest.mark.parametrize('reference, target', [(0, 100), (100, 0), (-1, 100), (None, 100)])
def test_non_positive_volume_is_identity(consumables, reference, target):
    scaled = calculate_scaled_quantities(consumables, reference, target)

    assert [s.scaled_quantity for s in scaled] == [10, 3.2]
    assert [s.original_quantity for s in scaled] == [10, 3.2]


def test_rescaling_always_starts_from_original(consumables):
    once = apply_scaling(consumables, 100, 80)
    twice = apply_scaling(once, 100, 250)

    direct = apply_scaling(consumables, 100, 250)
    assert [c.quantity for c in twice] == [c.quantity for c in direct]
    assert [c.original_quantity for c in twice] == [10, 3.2]


def test_restore_after_many_cycles_is_exact(consumables):
    current = consumables
    for target in (80, 37.5, 1200, 3):
        current = apply_scaling(current, 100, target)

    restored = restore_original_quantities(current)

    assert [c.quantity for c in restored] == [10, 3.2]
    assert all(c.original_quantity is None for c in restored)


def test_restore_leaves_unscaled_consumables_untouched():
    plain = ConsumableRecord('Bouchons', 'u', 600)

    assert restore_original_quantities([plain]) == [plain]


def test_canonical_quantity():
    assert canonical_quantity(ConsumableRecord('SO2', 'g', 15, original_quantity=10)) == 10
    assert canonical_quantity(ConsumableRecord('SO2', 'g', 15)) == 15


def test_format_scaled_consumable(consumables):
    scaled = calculate_scaled_quantities(consumables[:1], 100, 150)[0]

    assert format_scaled_consumable(scaled) == 'SO2: 15.0 g'
    assert format_scaled_consumable(scaled, show_original=True) == 'SO2: 15.0 g (基准: 10 g)'


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(0.125, 2) == 0.13
    assert percentage(1, 3) == 33
    assert percentage(5, 0) == 0
