from cellar.extensions import db
from cellar.core.records import StockRecord
from .base import BaseModel

class Stock(BaseModel):
    """
    辅料库存
    quantity 可以为负，表示缺口；quantity <= minimum_qty 时视为缺货
    """
    __tablename__ = 'stock_items'
    __table_args__ = (db.UniqueConstraint('user_id', 'name', 'unit', name='uq_stock_name_unit'),)

    name = db.Column(db.String(64), nullable=False)
    unit = db.Column(db.String(16), nullable=False, default='')
    quantity = db.Column(db.Float, nullable=False, default=0)
    minimum_qty = db.Column(db.Float, nullable=False, default=0)  # 补货阈值
    is_out_of_stock = db.Column(db.Boolean, default=False, index=True)
    description = db.Column(db.String(255))

    user_id = db.Column(db.Integer, db.ForeignKey('auth_users.id'), nullable=False, index=True)

    user = db.relationship('User', backref=db.backref('stocks', lazy='dynamic'))

    @property
    def is_low(self):
        return self.quantity <= self.minimum_qty

    def to_record(self):
        return StockRecord(
            id=self.id,
            name=self.name,
            unit=self.unit,
            quantity=self.quantity,
            minimum_qty=self.minimum_qty,
            is_out_of_stock=bool(self.is_out_of_stock),
        )
