"""
辅料用量按体积换算

动作模板里的辅料用量是针对 reference_volume 定义的，分配到工艺流程时
按目标体积线性换算；取消分配时恢复原始用量。
换算永远基于原始用量 (canonical_quantity)，多次分配不会累积误差。
"""
from dataclasses import dataclass
from typing import List, Sequence

from cellar.core.records import ConsumableRecord
from cellar.core.rounding import round_half_up


@dataclass(frozen=True)
class ScaledConsumable:
    consumable: ConsumableRecord
    scaled_quantity: float
    original_quantity: float

    @property
    def name(self):
        return self.consumable.name

    @property
    def unit(self):
        return self.consumable.unit

    def to_dict(self):
        return {
            'id': self.consumable.id,
            'name': self.consumable.name,
            'unit': self.consumable.unit,
            'scaledQuantity': self.scaled_quantity,
            'originalQuantity': self.original_quantity,
        }


def canonical_quantity(consumable: ConsumableRecord) -> float:
    """换算基准：已换算过的辅料取 original_quantity，否则取当前用量"""
    if consumable.original_quantity is not None:
        return consumable.original_quantity
    return consumable.quantity


def calculate_scaled_quantities(
    consumables: Sequence[ConsumableRecord],
    reference_volume: float,
    target_volume: float,
) -> List[ScaledConsumable]:
    """
    按 target_volume / reference_volume 换算用量，保留两位小数

    任一体积 <= 0 时不换算 (避免除零)，原样返回。
    """
    if not reference_volume or not target_volume or reference_volume <= 0 or target_volume <= 0:
        return [
            ScaledConsumable(
                consumable=c,
                scaled_quantity=canonical_quantity(c),
                original_quantity=canonical_quantity(c),
            )
            for c in consumables
        ]

    scale_factor = target_volume / reference_volume

    return [
        ScaledConsumable(
            consumable=c,
            scaled_quantity=round_half_up(canonical_quantity(c) * scale_factor, 2),
            original_quantity=canonical_quantity(c),
        )
        for c in consumables
    ]


def apply_scaling(
    consumables: Sequence[ConsumableRecord],
    reference_volume: float,
    target_volume: float,
) -> List[ConsumableRecord]:
    """换算后的辅料记录：quantity 为换算值，original_quantity 记录原始用量"""
    return [
        scaled.consumable.with_quantities(scaled.scaled_quantity, scaled.original_quantity)
        for scaled in calculate_scaled_quantities(consumables, reference_volume, target_volume)
    ]


def restore_original_quantities(consumables: Sequence[ConsumableRecord]) -> List[ConsumableRecord]:
    """取消换算：有 original_quantity 的辅料恢复原值并清空 original_quantity"""
    return [
        c.with_quantities(c.original_quantity, None) if c.original_quantity is not None else c
        for c in consumables
    ]


def format_quantity(quantity: float, unit: str) -> str:
    return f"{quantity} {unit}"


def format_scaled_consumable(scaled: ScaledConsumable, show_original: bool = False) -> str:
    display = f"{scaled.name}: {format_quantity(scaled.scaled_quantity, scaled.unit)}"

    if show_original and scaled.scaled_quantity != scaled.original_quantity:
        return f"{display} (基准: {format_quantity(scaled.original_quantity, scaled.unit)})"

    return display
