from cellar.core.records import ConsumableRecord, StockRecord
from cellar.core.stock_checker import (
    calculate_needs_purchase, calculate_stock_consumption, check_consumables_in_stock,
    find_matching_stock, generate_out_of_stock_entries, get_missing_consumables, is_below_minimum,
)


def test_shortfall_is_detected_case_insensitively():
    consumables = [ConsumableRecord(name='SO2', unit='g', quantity=50)]
    stocks = [StockRecord(id=1, name='so2', unit='G', quantity=30)]

    assert check_consumables_in_stock(consumables, stocks) is False
    assert calculate_needs_purchase(consumables, stocks) is True

    missing = get_missing_consumables(consumables, stocks)
    assert len(missing) == 1
    assert missing[0].available_quantity == 30
    assert missing[0].missing_quantity == 20
    assert missing[0].to_dict()['missingQuantity'] == 20


def test_empty_consumable_list_is_in_stock():
    assert check_consumables_in_stock([], []) is True
    assert get_missing_consumables([], []) == []


def test_unit_must_match():
    consumable = ConsumableRecord(name='Bentonite', unit='kg', quantity=1)

    assert find_matching_stock(consumable, [StockRecord(name='Bentonite', unit='g', quantity=5000)]) is None


def test_missing_stock_reports_zero_available():
    missing = get_missing_consumables([ConsumableRecord('Tanin', 'g', 12)], [])

    assert missing[0].available_quantity == 0
    assert missing[0].missing_quantity == 12


def test_sufficient_stock():
    consumables = [ConsumableRecord('SO2', 'g', 30), ConsumableRecord('Levures sèches', 'g', 5)]
    stocks = [StockRecord(id=1, name='SO2', unit='g', quantity=30), StockRecord(id=2, name='Levures sèches', unit='g', quantity=100)]

    assert check_consumables_in_stock(consumables, stocks)
    assert get_missing_consumables(consumables, stocks) == []


def test_consumption_decrements_matching_stocks():
    consumables = [ConsumableRecord('SO2', 'g', 30), ConsumableRecord('Tanin', 'g', 8)]
    stocks = [StockRecord(id=1, name='SO2', unit='g', quantity=100)]

    consumption = calculate_stock_consumption(consumables, stocks)

    assert [(u.id, u.new_quantity) for u in consumption.updated_stocks] == [(1, 70)]
    assert not consumption.success
    assert consumption.out_of_stock_items[0].name == 'Tanin'
    assert consumption.out_of_stock_items[0].missing_quantity == 8


def test_partial_shortfall_goes_negative():
    consumption = calculate_stock_consumption(
        [ConsumableRecord('SO2', 'g', 50)],
        [StockRecord(id=4, name='SO2', unit='g', quantity=30)],
    )

    assert consumption.updated_stocks[0].new_quantity == -20
    item = consumption.out_of_stock_items[0]
    assert (item.required_quantity, item.available_quantity, item.missing_quantity) == (50, 30, 20)


def test_consumables_sharing_a_stock_row_are_deducted_in_turn():
    consumables = [ConsumableRecord('SO2', 'g', 30), ConsumableRecord('so2', 'G', 20)]
    stocks = [StockRecord(id=1, name='SO2', unit='g', quantity=100)]

    consumption = calculate_stock_consumption(consumables, stocks)

    assert [(u.id, u.new_quantity) for u in consumption.updated_stocks] == [(1, 50)]
    assert consumption.success


def test_shared_stock_row_shortfall_is_counted_once():
    consumables = [ConsumableRecord('SO2', 'g', 30), ConsumableRecord('SO2', 'g', 20)]
    stocks = [StockRecord(id=1, name='SO2', unit='g', quantity=40)]

    consumption = calculate_stock_consumption(consumables, stocks)

    assert [(u.id, u.new_quantity) for u in consumption.updated_stocks] == [(1, -10)]
    item = consumption.out_of_stock_items[0]
    assert (item.required_quantity, item.available_quantity, item.missing_quantity) == (20, 10, 10)
    assert check_consumables_in_stock(consumables, stocks) is False

    missing = get_missing_consumables(consumables, stocks)
    assert [(m.name, m.available_quantity, m.missing_quantity) for m in missing] == [('SO2', 10, 10)]


def test_generate_out_of_stock_entries():
    consumption = calculate_stock_consumption([ConsumableRecord('Tanin', 'g', 8)], [])

    entries = generate_out_of_stock_entries(consumption.out_of_stock_items, user_id=3)

    assert entries == [{
        'name': 'Tanin',
        'unit': 'g',
        'quantity': -8,
        'minimum_qty': 0,
        'is_out_of_stock': True,
        'description': '缺货 - 缺少 8 g',
        'user_id': 3,
    }]


def test_is_below_minimum():
    assert is_below_minimum(StockRecord(name='SO2', unit='g', quantity=10, minimum_qty=10))
    assert not is_below_minimum(StockRecord(name='SO2', unit='g', quantity=11, minimum_qty=10))
