"""工艺流程服务 - 动作分配与辅料用量换算"""
from datetime import datetime
from flask import current_app
from cellar.extensions import db
from cellar.core.records import AllocationMode
from cellar.core.scaling import apply_scaling, restore_original_quantities
from cellar.exceptions import ValidationError
from cellar.models.production import Process
from cellar.utils.transactions import atomic


class ProcessService:
    """工艺流程服务"""

    @staticmethod
    def create_process(user, name, description=None, start_date=None):
        with atomic():
            process = Process(name=name, description=description, start_date=start_date, user_id=user.id)
            db.session.add(process)
        return process

    @staticmethod
    def delete_process(process):
        """删除流程前先取消所有动作分配，恢复辅料原始用量"""
        with atomic():
            for action in list(process.actions):
                ProcessService._unassign(action)
            for batch in list(process.batches):
                batch.process_id = None
            db.session.delete(process)

    @staticmethod
    def target_volume(process):
        """
        换算目标体积：流程所属 cuvée 所在的第一个酒罐的容量

        流程尚未分配给 cuvée 或 cuvée 尚未入罐时返回 None (不换算)
        """
        mode = AllocationMode(current_app.config.get('ALLOCATION_MODE', AllocationMode.MULTI.value))
        for batch in process.batches:
            if mode is AllocationMode.SINGLE:
                tanks = sorted(batch.legacy_tanks, key=lambda t: t.id)
            else:
                tanks = [link.tank for link in sorted(batch.tank_batches, key=lambda l: l.id)]
            if tanks:
                return tanks[0].capacity
        return None

    @staticmethod
    def _write_quantities(action, records):
        by_id = {r.id: r for r in records}
        for consumable in action.consumables:
            record = by_id[consumable.id]
            consumable.quantity = record.quantity
            consumable.original_quantity = record.original_quantity

    @staticmethod
    def set_base_quantity(action, consumable, base):
        """
        修改辅料用量

        动作已按罐容量换算时改的是原始用量，当前用量随之重新换算，
        取消分配后恢复的是修改后的用量。
        """
        if consumable.original_quantity is None and not action.scale_with_volume:
            consumable.quantity = base
            return consumable

        target = ProcessService.target_volume(action.process) if action.process is not None else None
        record = apply_scaling(
            [consumable.to_record().with_quantities(base, None)], action.reference_volume, target
        )[0]
        consumable.quantity = record.quantity
        consumable.original_quantity = record.original_quantity
        return consumable

    @staticmethod
    def assign_action(process, action, assigned_date=None):
        """
        把动作分配到工艺流程

        动作带 reference_volume 且流程的 cuvée 已入罐时，辅料用量按罐容量换算，
        原始用量保存在 original_quantity，换算总是基于原始用量。
        """
        if action.process_id is not None and action.process_id != process.id:
            raise ValidationError("该动作已分配到其它工艺流程", payload={'field': 'action_id'})

        target = ProcessService.target_volume(process)

        with atomic():
            action.process_id = process.id
            action.assigned_date = assigned_date or datetime.utcnow()

            if action.reference_volume and target:
                records = apply_scaling(
                    [c.to_record() for c in action.consumables],
                    action.reference_volume,
                    target,
                )
                ProcessService._write_quantities(action, records)
                action.scale_with_volume = True
            else:
                action.scale_with_volume = False

        current_app.logger.info(
            f"分配动作 #{action.id} -> 流程 {process.name}"
            + (f", 用量按 {action.reference_volume} -> {target} hL 换算" if action.scale_with_volume else '')
        )
        return action

    @staticmethod
    def _unassign(action):
        records = restore_original_quantities([c.to_record() for c in action.consumables])
        ProcessService._write_quantities(action, records)
        action.process_id = None
        action.assigned_date = None
        action.scale_with_volume = False

    @staticmethod
    def unassign_action(action):
        """取消分配并恢复辅料原始用量"""
        with atomic():
            ProcessService._unassign(action)
        current_app.logger.info(f"取消分配动作 #{action.id}")
        return action

    @staticmethod
    def assign_to_batch(batch, process):
        with atomic():
            batch.process_id = process.id
        return batch

    @staticmethod
    def unassign_from_batch(batch):
        with atomic():
            batch.process_id = None
        return batch
