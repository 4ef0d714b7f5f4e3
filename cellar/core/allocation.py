"""
cuvée 分装计算

纯函数：输入是已经从数据库取出的记录，输出是新的记录或投影。
写库 (以及把 读-算-写 包在同一个事务里) 是调用方的责任。
"""
from collections import OrderedDict
from typing import Dict, Iterable, List, Optional, Sequence

from cellar.core.records import (
    AllocationMode, AllocationPolicy, AllocationSuggestion, BatchAllocation,
    BatchRecord, TankAllocation, TankBatchRecord, TankRecord,
)
from cellar.core.rounding import percentage
from cellar.exceptions import ValidationError


def calculate_batch_allocation(batch: BatchRecord, tanks: Sequence[TankRecord]) -> BatchAllocation:
    """
    计算 cuvée 在各酒罐中的分装进度

    :param tanks: 装有该 cuvée 的酒罐，allocated_volume 为该 cuvée 在罐中的体积
    页面渲染用的投影，任何异常输入都退化为 0%，不抛异常
    """
    allocated_volume = sum((tank.allocated_volume or 0) for tank in tanks)
    quantity = batch.quantity or 0
    remaining_volume = max(0, quantity - allocated_volume)

    return BatchAllocation(
        batch_id=batch.id,
        batch_name=batch.name,
        total_volume=quantity,
        allocated_volume=allocated_volume,
        remaining_volume=remaining_volume,
        progress_percentage=percentage(allocated_volume, quantity),
        is_fully_allocated=remaining_volume == 0,
        tanks=tuple(
            TankAllocation(
                id=tank.id,
                name=tank.name,
                capacity=tank.capacity,
                allocated_volume=tank.allocated_volume,
                utilization_percentage=percentage(tank.allocated_volume or 0, tank.capacity),
            )
            for tank in tanks
        ),
    )


def _sort_by_available(tanks: Iterable[TankRecord], policy: AllocationPolicy) -> List[TankRecord]:
    return sorted(
        tanks,
        key=lambda tank: tank.available_capacity,
        reverse=policy is AllocationPolicy.WORST_FIT,
    )


def find_available_tanks(
    tanks: Sequence[TankRecord],
    required_volume: float,
    policy: AllocationPolicy = AllocationPolicy.BEST_FIT,
) -> List[TankRecord]:
    """
    查找能容纳 required_volume 的空闲酒罐 (batch_id 为空)

    默认 BEST_FIT：可用容量小的排前面，尽量把大罐留给大批次。
    注意与 suggest_optimal_allocation 的默认顺序相反，两种策略都保留，由调用方选择。
    """
    candidates = [
        tank for tank in tanks
        if tank.batch_id is None and tank.available_capacity >= required_volume
    ]
    return _sort_by_available(candidates, policy)


def suggest_optimal_allocation(
    batch_volume: float,
    tanks: Sequence[TankRecord],
    policy: AllocationPolicy = AllocationPolicy.WORST_FIT,
    min_volume: float = 0,
) -> List[AllocationSuggestion]:
    """
    建议 cuvée 的分装方案 (first-fit-decreasing 贪心)

    候选罐按策略排序后依次填入 min(剩余体积, 可用容量)，直到分完或罐用完。
    这是启发式算法，不保证罐数最少，也不保证碎片最少。
    """
    suggestions = []
    remaining_volume = batch_volume

    for tank in find_available_tanks(tanks, min_volume, policy):
        if remaining_volume <= 0:
            break

        volume_to_allocate = min(remaining_volume, tank.available_capacity)
        if volume_to_allocate > 0:
            suggestions.append(AllocationSuggestion(
                tank_id=tank.id,
                tank_name=tank.name,
                suggested_volume=volume_to_allocate,
            ))
            remaining_volume -= volume_to_allocate

    return suggestions


def format_allocation_progress(allocation: BatchAllocation) -> str:
    """分装进度的展示文本"""
    if allocation.is_fully_allocated:
        return f"✅ 已全部入罐 ({allocation.allocated_volume} hL)"

    if allocation.allocated_volume == 0:
        return f"⏳ 未入罐 (待分装 {allocation.total_volume} hL)"

    return (
        f"🟡 部分入罐 ({allocation.allocated_volume} hL / {allocation.total_volume} hL"
        f" - 剩余 {allocation.remaining_volume} hL)"
    )


def collect_batch_tanks(
    batch_id: int,
    tanks: Sequence[TankRecord],
    mode: AllocationMode = AllocationMode.MULTI,
    tank_batches: Sequence[TankBatchRecord] = (),
) -> List[TankRecord]:
    """
    把两种关联模型统一成 "装有该 cuvée 的罐" 列表

    SINGLE: batch_id 匹配的罐，体积取 Tank.allocated_volume
    MULTI:  每条 tank_batches 记录对应一个视图，体积取该记录的 volume
    """
    if mode is AllocationMode.SINGLE:
        return [tank for tank in tanks if tank.batch_id == batch_id]

    by_id = {tank.id: tank for tank in tanks}
    views = []
    for link in tank_batches:
        if link.batch_id != batch_id or link.tank_id not in by_id:
            continue
        tank = by_id[link.tank_id]
        views.append(TankRecord(
            id=tank.id,
            name=tank.name,
            capacity=tank.capacity,
            allocated_volume=link.volume,
            status=tank.status,
            material=tank.material,
            batch_id=batch_id,
        ))
    return views


def aggregate_batch_allocations(tanks: Sequence[TankRecord]) -> Dict[int, float]:
    """旧模型下的列表页汇总：按 batch_id 累加 allocated_volume"""
    totals = OrderedDict()
    for tank in tanks:
        if tank.batch_id is not None and (tank.allocated_volume or 0) > 0:
            totals[tank.batch_id] = totals.get(tank.batch_id, 0) + tank.allocated_volume
    return totals


def plan_batch_allocation(
    allocation: BatchAllocation,
    tank: TankRecord,
    volume: float,
    tank_load: Optional[float] = None,
) -> TankBatchRecord:
    """
    校验一次 cuvée -> 酒罐 的分装

    :param tank_load: 罐中已分装的总体积，默认取 tank.allocated_volume
    体积必须为正，且不能超过罐的可用容量和 cuvée 的剩余体积
    """
    if volume is None or volume <= 0:
        raise ValidationError("分装体积必须大于 0", payload={'field': 'volume'})

    load = tank.allocated_volume if tank_load is None else tank_load
    available = tank.capacity - load
    if volume > available:
        raise ValidationError(
            f"分装体积过大。{tank.name} 可用容量: {available:.1f} hL",
            payload={'field': 'volume', 'limit': available},
        )

    if volume > allocation.remaining_volume:
        raise ValidationError(
            f"分装体积超过 cuvée 剩余体积: {allocation.remaining_volume:.1f} hL",
            payload={'field': 'volume', 'limit': allocation.remaining_volume},
        )

    return TankBatchRecord(tank_id=tank.id, batch_id=allocation.batch_id, volume=volume)
