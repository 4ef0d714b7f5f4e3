"""生产动作与辅料服务"""
from datetime import datetime
from flask import current_app
from cellar.extensions import db
from cellar.core.records import CommodityType
from cellar.core.scaling import canonical_quantity
from cellar.exceptions import ValidationError
from cellar.models.production import Action, Consumable
from cellar.services.cellar_service import CellarService
from cellar.services.process_service import ProcessService
from cellar.services.stock_service import StockService
from cellar.utils.transactions import atomic


class ProductionService:
    """生产动作服务"""

    @staticmethod
    def create_action(user, action_type, tank=None, description=None, duration=1,
                      reference_volume=None, started_at=None, finished_at=None, consumables=()):
        """新建动作 (模板)，可同时带上辅料"""
        with atomic():
            action = Action(
                type=action_type,
                tank_id=tank.id if tank else None,
                user_id=user.id,
                description=description,
                duration=duration or 1,
                reference_volume=reference_volume,
                started_at=started_at,
                finished_at=finished_at,
                is_completed=False,
                needs_purchase=False,
            )
            db.session.add(action)
            for item in consumables:
                ProductionService._merge_consumable(action, item)
        return action

    @staticmethod
    def update_action(action, **fields):
        allowed = ('description', 'duration', 'reference_volume', 'started_at', 'finished_at', 'tank_id', 'type')
        with atomic():
            for key, value in fields.items():
                if key in allowed:
                    setattr(action, key, value)
        return action

    @staticmethod
    def delete_action(action):
        if action.process_id is not None:
            raise ValidationError("动作已分配到工艺流程，请先取消分配")
        with atomic():
            db.session.delete(action)

    @staticmethod
    def _clean_item(item):
        name = (item.get('name') or '').strip()
        try:
            quantity = float(item.get('quantity') or 0)
        except (TypeError, ValueError):
            quantity = 0
        if not name or quantity <= 0:
            return None
        return {
            'name': name,
            'unit': (item.get('unit') or '').strip(),
            'quantity': quantity,
            'description': item.get('description') or '',
            'commodity': item.get('commodity') or CommodityType.ANALYSIS_LAB,
        }

    @staticmethod
    def _merge_consumable(action, item):
        """同名同类别的辅料合并数量，否则新建"""
        cleaned = ProductionService._clean_item(item)
        if cleaned is None:
            return None

        existing = next(
            (c for c in action.consumables
             if c.name == cleaned['name'] and c.commodity == cleaned['commodity']),
            None
        )
        if existing is not None:
            base = canonical_quantity(existing.to_record()) + cleaned['quantity']
            return ProcessService.set_base_quantity(action, existing, base)

        consumable = Consumable(**cleaned)
        action.consumables.append(consumable)
        return ProcessService.set_base_quantity(action, consumable, cleaned['quantity'])

    @staticmethod
    def save_consumables(action, items):
        """
        批量保存辅料
        名称为空或数量不为正的行被忽略；同名同类别的辅料累加数量
        """
        with atomic():
            saved = [ProductionService._merge_consumable(action, item) for item in items]
        saved = [c for c in saved if c is not None]
        current_app.logger.info(f"动作 #{action.id} 保存 {len(saved)} 项辅料")
        return saved

    @staticmethod
    def update_consumable(consumable, **fields):
        if 'quantity' in fields and (fields['quantity'] is None or fields['quantity'] < 0):
            raise ValidationError("数量不能为负数", payload={'field': 'quantity'})
        with atomic():
            for key in ('name', 'unit', 'description', 'commodity'):
                if key in fields:
                    setattr(consumable, key, fields[key])
            if 'quantity' in fields:
                ProcessService.set_base_quantity(consumable.action, consumable, fields['quantity'])
        return consumable

    @staticmethod
    def delete_consumable(consumable):
        with atomic():
            db.session.delete(consumable)

    @staticmethod
    def complete_action(action):
        """
        执行动作：扣减库存，并在酒罐上记录一条 CONSOMMATION 动作 (若该类型存在)
        """
        if action.is_completed:
            raise ValidationError("动作已完成")

        consumption = StockService.consume_for_action(action)

        if action.tank_id is not None:
            consumption_type = CellarService.get_action_type(
                current_app.config['CONSUMPTION_ACTION_TYPE'], required=False
            )
            if consumption_type is not None:
                now = datetime.utcnow()
                with atomic():
                    db.session.add(Action(
                        type=consumption_type,
                        tank_id=action.tank_id,
                        user_id=action.user_id,
                        duration=1,
                        is_completed=True,
                        needs_purchase=action.needs_purchase,
                        started_at=now,
                        finished_at=now,
                    ))
        return consumption
