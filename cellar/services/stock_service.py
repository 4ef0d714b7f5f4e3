"""辅料库存服务"""
from flask import current_app
from sqlalchemy import func
from cellar.extensions import db
from cellar.core.stock_checker import (
    calculate_stock_consumption, check_consumables_in_stock, find_matching_stock,
    get_missing_consumables, is_below_minimum,
)
from cellar.exceptions import ValidationError
from cellar.models.stock import Stock
from cellar.utils.transactions import atomic


class StockService:
    """辅料库存服务"""

    @staticmethod
    def find_by_key(user, name, unit, exclude_id=None):
        """按 (名称, 单位) 查找库存，大小写不敏感"""
        query = Stock.owned_by(user).filter(
            func.lower(Stock.name) == (name or '').lower(),
            func.lower(Stock.unit) == (unit or '').lower(),
        )
        if exclude_id is not None:
            query = query.filter(Stock.id != exclude_id)
        return query.first()

    @staticmethod
    def refresh_flag(stock):
        stock.is_out_of_stock = is_below_minimum(stock.to_record())
        return stock

    @staticmethod
    def create_stock(user, name, unit, quantity=0, minimum_qty=0, description=None):
        """新建库存，同一用户下 (名称, 单位) 唯一"""
        if StockService.find_by_key(user, name, unit):
            raise ValidationError(
                f"库存 {name} ({unit}) 已存在",
                payload={'errors': {'name': ['名称和单位的组合已存在']}}
            )

        with atomic():
            stock = Stock(
                name=name,
                unit=unit,
                quantity=quantity or 0,
                minimum_qty=minimum_qty or 0,
                description=description,
                user_id=user.id,
            )
            StockService.refresh_flag(stock)
            db.session.add(stock)
        return stock

    @staticmethod
    def update_stock(stock, name, unit, quantity, minimum_qty, description=None):
        if StockService.find_by_key(stock.user, name, unit, exclude_id=stock.id):
            raise ValidationError(
                f"库存 {name} ({unit}) 已存在",
                payload={'errors': {'name': ['名称和单位的组合已存在']}}
            )

        with atomic():
            stock.name = name
            stock.unit = unit
            stock.quantity = quantity
            stock.minimum_qty = minimum_qty
            stock.description = description
            StockService.refresh_flag(stock)
        return stock

    @staticmethod
    def restock(stock, quantity):
        """补货：数量累加并重新计算缺货标记"""
        if quantity is None or quantity <= 0:
            raise ValidationError("补货数量必须大于 0", payload={'field': 'quantity'})

        with atomic():
            stock.quantity += quantity
            StockService.refresh_flag(stock)

        current_app.logger.info(f"补货: {stock.name} +{quantity} {stock.unit} -> {stock.quantity}")
        return stock

    @staticmethod
    def low_stocks(user):
        return Stock.owned_by(user).filter(
            Stock.quantity <= Stock.minimum_qty,
        ).order_by(Stock.name.asc()).all()

    @staticmethod
    def _records(user):
        return [s.to_record() for s in Stock.owned_by(user).all()]

    @staticmethod
    def check_action(action):
        """检查动作所需辅料的库存情况 (不写库)"""
        consumables = [c.to_record() for c in action.consumables]
        stocks = StockService._records(action.user)
        missing = get_missing_consumables(consumables, stocks)
        return {
            'in_stock': check_consumables_in_stock(consumables, stocks),
            'needs_purchase': bool(missing),
            'missing': [m.to_dict() for m in missing],
        }

    @staticmethod
    def consume_for_action(action):
        """
        执行动作：扣减辅料库存

        没有匹配库存的辅料先建一条 0 数量的库存行，再统一扣减；
        扣成负数的库存标记缺货，动作标记 needs_purchase。
        整个过程在一个事务里完成。
        """
        user = action.user

        with atomic():
            consumables = [c.to_record() for c in action.consumables]
            stocks = StockService._records(user)

            for consumable in consumables:
                if find_matching_stock(consumable, stocks) is None:
                    stock = Stock(
                        name=consumable.name,
                        unit=consumable.unit,
                        quantity=0,
                        minimum_qty=0,
                        user_id=user.id,
                    )
                    db.session.add(stock)
                    db.session.flush()
                    stocks.append(stock.to_record())

            consumption = calculate_stock_consumption(consumables, stocks)

            for update in consumption.updated_stocks:
                stock = db.session.get(Stock, update.id)
                stock.quantity = update.new_quantity
                if update.new_quantity < 0:
                    stock.description = f"缺货 - 缺少 {abs(update.new_quantity)} {stock.unit}"
                StockService.refresh_flag(stock)

            # 按名称链接辅料与库存
            by_key = {(s.name.lower(), s.unit.lower()): s.id for s in stocks}
            for consumable in action.consumables:
                consumable.stock_id = by_key.get((consumable.name.lower(), consumable.unit.lower()))

            action.needs_purchase = not consumption.success
            action.is_completed = True

        current_app.logger.info(
            f"扣减库存: 动作 #{action.id}, {len(consumption.updated_stocks)} 行库存"
        )
        if not consumption.success:
            current_app.logger.warning(
                f"动作 #{action.id} 辅料不足: "
                + ', '.join(f"{i.name} 缺 {i.missing_quantity} {i.unit}" for i in consumption.out_of_stock_items)
            )
        return consumption
