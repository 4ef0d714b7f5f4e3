"""cuvée 分装服务 - 进度、候选罐、分装建议与分装写库"""
from flask import current_app
from cellar.extensions import db
from cellar.core.allocation import (
    aggregate_batch_allocations, calculate_batch_allocation, collect_batch_tanks,
    find_available_tanks, plan_batch_allocation, suggest_optimal_allocation,
)
from cellar.core.records import AllocationMode, AllocationPolicy
from cellar.exceptions import ValidationError
from cellar.models.cellar import Tank, Batch, TankBatch
from cellar.utils.transactions import atomic


class AllocationService:
    """分装服务，关联模型由配置 ALLOCATION_MODE 决定 (multi / single)"""

    @staticmethod
    def mode():
        return AllocationMode(current_app.config.get('ALLOCATION_MODE', AllocationMode.MULTI.value))

    @staticmethod
    def _tank_records(user, mode):
        return [t.to_record(mode) for t in Tank.owned_by(user).all()]

    @staticmethod
    def batch_allocation(batch, mode=None):
        """计算单个 cuvée 的分装进度"""
        mode = mode or AllocationService.mode()
        tanks = Tank.owned_by(batch.user).all()
        links = [link.to_record() for link in batch.tank_batches]
        views = collect_batch_tanks(batch.id, [t.to_record(mode) for t in tanks], mode, links)
        return calculate_batch_allocation(batch.to_record(), views)

    @staticmethod
    def overview(user, mode=None):
        """
        列表页汇总：每个 cuvée 的已分装体积

        :return: [(batch, allocated_volume), ...]
        """
        mode = mode or AllocationService.mode()
        batches = Batch.owned_by(user).order_by(Batch.created_at.desc()).all()

        if mode is AllocationMode.SINGLE:
            totals = aggregate_batch_allocations(AllocationService._tank_records(user, mode))
        else:
            totals = {}
            for batch in batches:
                totals[batch.id] = sum(link.volume for link in batch.tank_batches)

        return [(batch, totals.get(batch.id, 0)) for batch in batches]

    @staticmethod
    def available_tanks(user, required_volume, policy=AllocationPolicy.BEST_FIT):
        """能容纳 required_volume 的空闲酒罐"""
        mode = AllocationService.mode()
        return find_available_tanks(AllocationService._tank_records(user, mode), required_volume, policy)

    @staticmethod
    def suggestions(batch, policy=AllocationPolicy.WORST_FIT, min_volume=0):
        """为 cuvée 剩余体积生成分装建议"""
        mode = AllocationService.mode()
        allocation = AllocationService.batch_allocation(batch, mode)
        tanks = AllocationService._tank_records(batch.user, mode)
        return suggest_optimal_allocation(allocation.remaining_volume, tanks, policy, min_volume)

    @staticmethod
    def allocate(batch, tank, volume):
        """
        把 volume hL 的 cuvée 分装进酒罐

        校验与写库在同一个事务里完成，同一罐重复分装时累加体积。
        """
        mode = AllocationService.mode()

        with atomic():
            allocation = AllocationService.batch_allocation(batch, mode)

            if mode is AllocationMode.SINGLE:
                if tank.batch_id is not None and tank.batch_id != batch.id:
                    raise ValidationError(f"{tank.name} 已装有其它 cuvée", payload={'field': 'tank_id'})
                planned = plan_batch_allocation(allocation, tank.to_record(mode), volume)
                tank.batch_id = batch.id
                tank.allocated_volume = (tank.allocated_volume or 0) + planned.volume
                link = planned
            else:
                planned = plan_batch_allocation(
                    allocation, tank.to_record(mode), volume, tank_load=tank.batch_load
                )
                link = TankBatch.query.filter_by(tank_id=tank.id, batch_id=batch.id).first()
                if link is None:
                    link = TankBatch(tank_id=tank.id, batch_id=batch.id, volume=0)
                    db.session.add(link)
                link.volume += planned.volume

        current_app.logger.info(f"分装: {batch.name} -> {tank.name} {volume} hL ({mode.value})")
        return link

    @staticmethod
    def release(batch, tank):
        """把 cuvée 从酒罐中撤出"""
        mode = AllocationService.mode()

        with atomic():
            if mode is AllocationMode.SINGLE:
                if tank.batch_id != batch.id:
                    raise ValidationError(f"{tank.name} 未装有 {batch.name}")
                tank.batch_id = None
                tank.allocated_volume = 0
            else:
                link = TankBatch.query.filter_by(tank_id=tank.id, batch_id=batch.id).first()
                if link is None:
                    raise ValidationError(f"{tank.name} 未装有 {batch.name}")
                db.session.delete(link)

        current_app.logger.info(f"撤出分装: {batch.name} <- {tank.name}")
