"""
辅料库存检查与扣减计算

辅料与库存按 (名称, 单位) 匹配，大小写不敏感，不做模糊匹配。
这里只生成扣减建议，写库由 StockService 在事务中完成。
"""
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from cellar.core.records import ConsumableRecord, StockRecord


@dataclass(frozen=True)
class MissingConsumable:
    name: str
    unit: str
    quantity: float
    available_quantity: float

    @property
    def missing_quantity(self) -> float:
        return self.quantity - self.available_quantity

    def to_dict(self):
        return {
            'name': self.name,
            'unit': self.unit,
            'quantity': self.quantity,
            'availableQuantity': self.available_quantity,
            'missingQuantity': self.missing_quantity,
        }


@dataclass(frozen=True)
class StockUpdate:
    id: Optional[int]
    new_quantity: float
    was_consumed: bool = True


@dataclass(frozen=True)
class OutOfStockItem:
    name: str
    unit: str
    required_quantity: float
    available_quantity: float
    missing_quantity: float

    def to_dict(self):
        return {
            'name': self.name,
            'unit': self.unit,
            'requiredQuantity': self.required_quantity,
            'availableQuantity': self.available_quantity,
            'missingQuantity': self.missing_quantity,
        }


@dataclass(frozen=True)
class StockConsumption:
    updated_stocks: Tuple[StockUpdate, ...] = field(default_factory=tuple)
    out_of_stock_items: Tuple[OutOfStockItem, ...] = field(default_factory=tuple)

    @property
    def success(self) -> bool:
        return len(self.out_of_stock_items) == 0


def _key(name: str, unit: str) -> Tuple[str, str]:
    return (name or '').lower(), (unit or '').lower()


def find_matching_stock(consumable: ConsumableRecord, stocks: Sequence[StockRecord]) -> Optional[StockRecord]:
    wanted = _key(consumable.name, consumable.unit)
    return next((s for s in stocks if _key(s.name, s.unit) == wanted), None)


def check_consumables_in_stock(consumables: Sequence[ConsumableRecord], stocks: Sequence[StockRecord]) -> bool:
    """所有辅料都有匹配库存且数量充足时返回 True，空列表视为充足

    同一 (名称, 单位) 的多条辅料合计用量后再与库存比较。
    """
    if not consumables:
        return True

    required = {}
    for consumable in consumables:
        key = _key(consumable.name, consumable.unit)
        required[key] = required.get(key, 0) + consumable.quantity

    available = {_key(s.name, s.unit): s.quantity for s in stocks}
    return all(key in available and available[key] >= quantity for key, quantity in required.items())


def get_missing_consumables(
    consumables: Sequence[ConsumableRecord],
    stocks: Sequence[StockRecord],
) -> List[MissingConsumable]:
    """缺货或数量不足的辅料，available_quantity 为匹配库存数量 (无匹配为 0)

    多条辅料共用一行库存时，后面的辅料只能用前面剩下的数量。
    """
    remaining = {}
    missing = []
    for consumable in consumables:
        stock = find_matching_stock(consumable, stocks)
        if stock is None:
            available = 0
        else:
            key = _key(stock.name, stock.unit)
            available = max(remaining[key], 0) if key in remaining else stock.quantity
            remaining[key] = available - consumable.quantity
        if available < consumable.quantity:
            missing.append(MissingConsumable(
                name=consumable.name,
                unit=consumable.unit,
                quantity=consumable.quantity,
                available_quantity=available,
            ))
    return missing


def calculate_needs_purchase(consumables: Sequence[ConsumableRecord], stocks: Sequence[StockRecord]) -> bool:
    return not check_consumables_in_stock(consumables, stocks)


def calculate_stock_consumption(
    consumables: Sequence[ConsumableRecord],
    stocks: Sequence[StockRecord],
) -> StockConsumption:
    """
    计算执行动作后的库存

    有匹配库存：新数量 = 库存 - 用量，可以为负 (部分缺货，不是错误)，为负时记一条缺货。
    无匹配库存：整个用量记为缺货。
    多条辅料匹配同一行库存时依次扣减，每行库存只给出一条最终数量。
    """
    balances = {}
    out_of_stock_items = []

    for consumable in consumables:
        stock = find_matching_stock(consumable, stocks)

        if stock is not None:
            key = _key(stock.name, stock.unit)
            touched = key in balances
            current = balances[key][1] if touched else stock.quantity
            new_quantity = current - consumable.quantity
            balances[key] = (stock.id, new_quantity)

            if new_quantity < 0:
                # 前面的辅料已经造成的缺口不重复计入
                already_short = max(0, -current) if touched else 0
                out_of_stock_items.append(OutOfStockItem(
                    name=consumable.name,
                    unit=consumable.unit,
                    required_quantity=consumable.quantity,
                    available_quantity=current,
                    missing_quantity=abs(new_quantity) - already_short,
                ))
        else:
            out_of_stock_items.append(OutOfStockItem(
                name=consumable.name,
                unit=consumable.unit,
                required_quantity=consumable.quantity,
                available_quantity=0,
                missing_quantity=consumable.quantity,
            ))

    return StockConsumption(
        updated_stocks=tuple(StockUpdate(id=stock_id, new_quantity=q) for stock_id, q in balances.values()),
        out_of_stock_items=tuple(out_of_stock_items),
    )


def generate_out_of_stock_entries(out_of_stock_items: Sequence[OutOfStockItem], user_id: int) -> List[dict]:
    """为缺货项生成待创建的库存行 (负数量表示缺口)"""
    return [
        {
            'name': item.name,
            'unit': item.unit,
            'quantity': -item.missing_quantity,
            'minimum_qty': 0,
            'is_out_of_stock': True,
            'description': f"缺货 - 缺少 {item.missing_quantity} {item.unit}",
            'user_id': user_id,
        }
        for item in out_of_stock_items
    ]


def is_below_minimum(stock: StockRecord) -> bool:
    """库存数量不高于预警阈值即视为缺货"""
    return stock.quantity <= stock.minimum_qty
