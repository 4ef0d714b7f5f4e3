from cellar.extensions import db
from cellar.core.records import CommodityType, ConsumableRecord
from .base import BaseModel


class ActionType(BaseModel):
    """动作类型 (REMPLISSAGE / CONDITIONNEMENT / CONSOMMATION ...)"""
    __tablename__ = 'prod_action_types'

    name = db.Column(db.String(64), unique=True, nullable=False)
    description = db.Column(db.String(255))

    def __repr__(self):
        return f'<ActionType {self.name}>'


class Process(BaseModel):
    """工艺流程：一组有序的生产动作，可分配给 cuvée"""
    __tablename__ = 'prod_processes'

    name = db.Column(db.String(64), nullable=False)
    description = db.Column(db.String(255))
    start_date = db.Column(db.DateTime, nullable=True)

    user_id = db.Column(db.Integer, db.ForeignKey('auth_users.id'), nullable=False, index=True)

    user = db.relationship('User', backref=db.backref('processes', lazy='dynamic'))
    actions = db.relationship('Action', backref='process', order_by='Action.assigned_date')


class Action(BaseModel):
    """
    生产动作
    未分配工艺流程时是模板；reference_volume 为辅料用量对应的参考体积 (hL)
    """
    __tablename__ = 'prod_actions'

    type_id = db.Column(db.Integer, db.ForeignKey('prod_action_types.id'), nullable=False)
    tank_id = db.Column(db.Integer, db.ForeignKey('cellar_tanks.id', ondelete='SET NULL'), nullable=True)
    process_id = db.Column(db.Integer, db.ForeignKey('prod_processes.id', ondelete='SET NULL'), nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey('auth_users.id'), nullable=False, index=True)

    description = db.Column(db.String(255))
    duration = db.Column(db.Integer, default=1)  # 天
    started_at = db.Column(db.DateTime)
    finished_at = db.Column(db.DateTime)
    assigned_date = db.Column(db.DateTime)
    is_completed = db.Column(db.Boolean, default=False)
    needs_purchase = db.Column(db.Boolean, default=False)

    # 用量换算
    reference_volume = db.Column(db.Float, nullable=True)
    scale_with_volume = db.Column(db.Boolean, default=False)

    type = db.relationship('ActionType', backref='actions')
    tank = db.relationship('Tank', backref='actions')
    user = db.relationship('User')
    consumables = db.relationship(
        'Consumable', backref='action', cascade='all, delete-orphan', order_by='Consumable.id'
    )

    def to_dict(self):
        data = super().to_dict()
        data['type'] = self.type.name if self.type else None
        data['consumables'] = [c.to_dict() for c in self.consumables]
        return data


class Consumable(BaseModel):
    """
    动作消耗的辅料
    original_quantity 仅在动作分配到工艺流程 (用量已换算) 时有值，取消分配时用于恢复
    """
    __tablename__ = 'prod_consumables'

    name = db.Column(db.String(64), nullable=False)
    unit = db.Column(db.String(16), nullable=False)
    quantity = db.Column(db.Float, nullable=False, default=0)
    original_quantity = db.Column(db.Float, nullable=True)
    description = db.Column(db.String(255))
    commodity = db.Column(db.String(32), default=CommodityType.ANALYSIS_LAB)

    action_id = db.Column(db.Integer, db.ForeignKey('prod_actions.id'), nullable=True)
    stock_id = db.Column(db.Integer, db.ForeignKey('stock_items.id', ondelete='SET NULL'), nullable=True)

    stock = db.relationship('Stock')

    def to_record(self):
        return ConsumableRecord(
            id=self.id,
            name=self.name,
            unit=self.unit,
            quantity=self.quantity,
            original_quantity=self.original_quantity,
            description=self.description,
            commodity=self.commodity,
        )
