"""
地块 -> 酒罐 入罐与葡萄品种混酿计算

入罐时按品种累加体积并重算占比 (占比 = 品种体积 / 罐容量 × 100)，
出罐时按各品种体积比例扣减。
只计算、不写库；调用方必须把 读罐 -> 计算 -> 写 PlotTank/GrapeComposition/Tank
放在同一个数据库事务里。
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Sequence, Tuple

from cellar.core.records import (
    ActionRecord, GrapeCompositionRecord, PlotRecord, PlotTankRecord,
    TankRecord, TankStatus,
)
from cellar.exceptions import ValidationError

FILLING_ACTION = 'REMPLISSAGE'

# 浮点误差容限
EPSILON = 1e-9


@dataclass(frozen=True)
class PlotAssignment:
    plot_tank: PlotTankRecord
    composition: GrapeCompositionRecord
    composition_created: bool
    new_status: str
    filling_action: ActionRecord


@dataclass(frozen=True)
class WineRemoval:
    compositions: Tuple[GrapeCompositionRecord, ...]
    removed_volume: float
    used_volume: float
    new_status: str

    @property
    def empties_tank(self) -> bool:
        return self.new_status == TankStatus.MAINTENANCE


def composition_percentage(volume: float, tank_capacity: float) -> float:
    if not tank_capacity or tank_capacity <= 0:
        return 0.0
    return volume / tank_capacity * 100


def current_tank_volume(
    plot_tanks: Sequence[PlotTankRecord],
    compositions: Sequence[GrapeCompositionRecord],
) -> float:
    """
    罐内 "未归类" 体积 = 入罐记录总体积 - 品种组成总体积

    品种组成可能滞后于入罐记录 (部分处理中)，两者之差才是当前占用。
    """
    transferred = sum(pt.volume for pt in plot_tanks)
    classified = sum(gc.volume for gc in compositions)
    return transferred - classified


def plan_plot_assignment(
    tank: TankRecord,
    plot: PlotRecord,
    volume: float,
    yield_ratio: float,
    plot_tanks: Sequence[PlotTankRecord] = (),
    compositions: Sequence[GrapeCompositionRecord] = (),
    harvest_date: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> PlotAssignment:
    """
    计算把 plot 的 volume hL 收成转入 tank 的结果

    :raises ValidationError: 体积非正、超过可用容量、超过地块理论产量
    """
    if volume is None or volume <= 0:
        raise ValidationError("入罐体积必须大于 0", payload={'field': 'volume'})

    available_capacity = tank.capacity - current_tank_volume(plot_tanks, compositions)
    if volume > available_capacity + EPSILON:
        raise ValidationError(
            f"入罐体积过大。可用容量: {available_capacity:.1f} hL",
            payload={'field': 'volume', 'limit': available_capacity},
        )

    max_plot_volume = plot.max_volume(yield_ratio)
    if volume > max_plot_volume + EPSILON:
        raise ValidationError(
            f"超过该地块的理论产量。最大体积: {max_plot_volume:.1f} hL "
            f"({plot.surface} ha × {yield_ratio} hL/ha)",
            payload={'field': 'volume', 'limit': max_plot_volume},
        )

    # 与数据库里的时间一致，使用不带时区的 UTC 时间
    moment = harvest_date or now or datetime.now(timezone.utc).replace(tzinfo=None)

    existing = next(
        (gc for gc in compositions if gc.grape_variety == plot.grape_variety),
        None,
    )
    if existing is not None:
        new_volume = existing.volume + volume
        composition = GrapeCompositionRecord(
            tank_id=tank.id,
            grape_variety=plot.grape_variety,
            volume=new_volume,
            percentage=composition_percentage(new_volume, tank.capacity),
            added_at=existing.added_at,
        )
    else:
        composition = GrapeCompositionRecord(
            tank_id=tank.id,
            grape_variety=plot.grape_variety,
            volume=volume,
            percentage=composition_percentage(volume, tank.capacity),
            added_at=moment,
        )

    new_status = TankStatus.IN_USE if tank.status == TankStatus.EMPTY else tank.status

    return PlotAssignment(
        plot_tank=PlotTankRecord(
            plot_id=plot.id,
            tank_id=tank.id,
            volume=volume,
            harvest_date=harvest_date,
        ),
        composition=composition,
        composition_created=existing is None,
        new_status=new_status,
        filling_action=ActionRecord(
            type_name=FILLING_ACTION,
            tank_id=tank.id,
            started_at=moment,
            finished_at=moment,
        ),
    )


def plan_wine_removal(
    tank: TankRecord,
    compositions: Sequence[GrapeCompositionRecord],
    volume: float,
) -> WineRemoval:
    """
    按各品种体积比例从酒罐中取出 volume hL

    体积归零的品种被删除；取空整罐时罐状态转为 MAINTENANCE。
    :raises ValidationError: 体积非正或超过罐内已归类体积
    """
    if volume is None or volume <= 0:
        raise ValidationError("出罐体积必须大于 0", payload={'field': 'volume'})

    used_volume = sum(gc.volume for gc in compositions)
    if volume > used_volume + EPSILON:
        raise ValidationError(
            f"出罐体积超过罐内现有体积: {used_volume:.1f} hL",
            payload={'field': 'volume', 'limit': used_volume},
        )

    remaining = []
    for gc in compositions:
        to_remove = min(gc.volume, volume * (gc.volume / used_volume))
        left = gc.volume - to_remove
        if left <= EPSILON:
            continue
        remaining.append(GrapeCompositionRecord(
            tank_id=gc.tank_id,
            grape_variety=gc.grape_variety,
            volume=left,
            percentage=composition_percentage(left, tank.capacity),
            added_at=gc.added_at,
        ))

    empties_tank = abs(volume - used_volume) <= EPSILON
    return WineRemoval(
        compositions=tuple(remaining),
        removed_volume=volume,
        used_volume=used_volume,
        new_status=TankStatus.MAINTENANCE if empties_tank else tank.status,
    )
