"""酒罐服务 - 入罐 (地块 -> 酒罐) 与出罐 (装瓶)"""
from datetime import datetime
from flask import current_app
from cellar.extensions import db
from cellar.core.blending import plan_plot_assignment, plan_wine_removal
from cellar.exceptions import NotFoundError
from cellar.models.cellar import Tank, Batch, GrapeComposition
from cellar.models.vineyard import PlotTank
from cellar.models.production import Action, ActionType
from cellar.utils.transactions import atomic


class CellarService:
    """酒罐服务"""

    @staticmethod
    def get_action_type(name, required=True):
        """按名称查找动作类型 (不区分大小写，包含匹配)"""
        action_type = ActionType.query.filter(ActionType.name.ilike(f'%{name}%')).first()
        if action_type is None and required:
            raise NotFoundError(f"动作类型 {name} 不存在", payload={'action_type': name})
        return action_type

    @staticmethod
    def _record_action(action_record, action_type, user):
        action = Action(
            type=action_type,
            tank_id=action_record.tank_id,
            user_id=user.id,
            duration=action_record.duration,
            is_completed=action_record.is_completed,
            needs_purchase=action_record.needs_purchase,
            started_at=action_record.started_at,
            finished_at=action_record.finished_at,
        )
        db.session.add(action)
        return action

    @staticmethod
    def assign_plot_to_tank(tank, plot, volume, user, harvest_date=None, yield_ratio=None):
        """
        把地块收成转入酒罐

        Args:
            tank: 目标酒罐
            plot: 来源地块
            volume: 转入体积 (hL)
            harvest_date: 采收日期，为空时取当前时间
            yield_ratio: 出酒率 (hL/ha)，为空时取配置 DEFAULT_YIELD_RATIO

        校验失败抛 ValidationError，任何记录都不会被修改。
        """
        if yield_ratio is None:
            yield_ratio = current_app.config['DEFAULT_YIELD_RATIO']

        with atomic():
            assignment = plan_plot_assignment(
                tank=tank.to_record(),
                plot=plot.to_record(),
                volume=volume,
                yield_ratio=yield_ratio,
                plot_tanks=[pt.to_record() for pt in tank.plot_tanks],
                compositions=[gc.to_record() for gc in tank.grape_compositions],
                harvest_date=harvest_date,
            )
            filling_type = CellarService.get_action_type(current_app.config['FILLING_ACTION_TYPE'])

            plot_tank = PlotTank(
                plot_id=plot.id,
                tank_id=tank.id,
                volume=assignment.plot_tank.volume,
                harvest_date=assignment.plot_tank.harvest_date,
            )
            db.session.add(plot_tank)

            composition = next(
                (gc for gc in tank.grape_compositions if gc.grape_variety == plot.grape_variety),
                None
            )
            if composition is None:
                composition = GrapeComposition(
                    tank_id=tank.id,
                    grape_variety=assignment.composition.grape_variety,
                    added_at=assignment.composition.added_at,
                )
                tank.grape_compositions.append(composition)
            composition.volume = assignment.composition.volume
            composition.percentage = assignment.composition.percentage

            previous_status = tank.status
            tank.status = assignment.new_status

            action = CellarService._record_action(assignment.filling_action, filling_type, user)

        current_app.logger.info(
            f"入罐: {plot.name} -> {tank.name} {volume} hL ({plot.grape_variety}),"
            f" 状态 {previous_status} -> {tank.status}"
        )
        return {
            'plot_tank': plot_tank,
            'composition': composition,
            'composition_created': assignment.composition_created,
            'action': action,
        }

    @staticmethod
    def remove_wine(tank, volume, user, name=None, created_at=None):
        """
        从酒罐取酒装瓶 (conditionnement)

        按品种比例扣减组成，生成一个体积为 volume 的 cuvée；
        取空整罐时罐转为 MAINTENANCE。若存在 CONDITIONNEMENT 动作类型则记录一条可追溯动作。
        """
        moment = created_at or datetime.utcnow()

        with atomic():
            removal = plan_wine_removal(
                tank=tank.to_record(),
                compositions=[gc.to_record() for gc in tank.grape_compositions],
                volume=volume,
            )

            batch = Batch(
                name=name or f"Batch {moment.strftime('%Y-%m-%d')}",
                description=f"{tank.name} 装瓶",
                quantity=volume,
                user_id=user.id,
                created_at=moment,
            )
            db.session.add(batch)

            remaining = {gc.grape_variety: gc for gc in removal.compositions}
            for composition in list(tank.grape_compositions):
                updated = remaining.get(composition.grape_variety)
                if updated is None:
                    tank.grape_compositions.remove(composition)
                else:
                    composition.volume = updated.volume
                    composition.percentage = updated.percentage

            tank.status = removal.new_status

            bottling_type = CellarService.get_action_type(
                current_app.config['BOTTLING_ACTION_TYPE'], required=False
            )
            if bottling_type is not None:
                db.session.add(Action(
                    type=bottling_type,
                    tank_id=tank.id,
                    user_id=user.id,
                    duration=1,
                    is_completed=True,
                    needs_purchase=False,
                    started_at=moment,
                    finished_at=moment,
                ))

        current_app.logger.info(
            f"出罐: {tank.name} 取出 {volume} hL / {removal.used_volume} hL, 状态 {tank.status}"
        )
        return {'batch': batch, 'removal': removal}

    @staticmethod
    def tanks_for_user(user):
        return Tank.owned_by(user).order_by(Tank.name.asc()).all()
