from datetime import datetime
from cellar.extensions import db
from cellar.core.records import (
    AllocationMode, BatchRecord, GrapeCompositionRecord, TankBatchRecord,
    TankMaterial, TankRecord, TankStatus,
)
from .base import BaseModel


class Tank(BaseModel):
    """
    酒罐 (cuve)
    capacity 为容量上限 (hL)。
    batch_id / allocated_volume 是旧的单 cuvée 占用字段，新数据走 tank_batches 关联表。
    """
    __tablename__ = 'cellar_tanks'

    STATUS_EMPTY = TankStatus.EMPTY
    STATUS_IN_USE = TankStatus.IN_USE
    STATUS_MAINTENANCE = TankStatus.MAINTENANCE

    name = db.Column(db.String(64), nullable=False)
    description = db.Column(db.String(255))
    material = db.Column(db.String(16), default=TankMaterial.INOX)
    status = db.Column(db.String(16), default=TankStatus.EMPTY, index=True)
    capacity = db.Column(db.Float, nullable=False)

    # 旧模型：单 cuvée 占用
    batch_id = db.Column(db.Integer, db.ForeignKey('cellar_batches.id', ondelete='SET NULL'), nullable=True)
    allocated_volume = db.Column(db.Float, default=0)

    user_id = db.Column(db.Integer, db.ForeignKey('auth_users.id'), nullable=False, index=True)

    # 关系
    user = db.relationship('User', backref=db.backref('tanks', lazy='dynamic'))
    batch = db.relationship('Batch', foreign_keys=[batch_id], backref='legacy_tanks')
    tank_batches = db.relationship('TankBatch', backref='tank', cascade='all, delete-orphan')
    grape_compositions = db.relationship(
        'GrapeComposition', backref='tank', cascade='all, delete-orphan',
        order_by='GrapeComposition.grape_variety'
    )
    plot_tanks = db.relationship('PlotTank', backref='tank', cascade='all, delete-orphan')

    @property
    def batch_load(self):
        """关联表中已分装的总体积"""
        return sum(link.volume for link in self.tank_batches)

    @property
    def wine_volume(self):
        """罐内已归类 (按品种) 的酒体积"""
        return sum(gc.volume for gc in self.grape_compositions)

    def to_record(self, mode=AllocationMode.MULTI):
        allocated = self.batch_load if mode is AllocationMode.MULTI else (self.allocated_volume or 0)
        return TankRecord(
            id=self.id,
            name=self.name,
            capacity=self.capacity,
            allocated_volume=allocated,
            status=self.status or TankStatus.EMPTY,
            material=self.material or TankMaterial.INOX,
            batch_id=self.batch_id,
        )

    def to_dict(self):
        data = super().to_dict()
        data['wine_volume'] = self.wine_volume
        data['batch_load'] = self.batch_load
        data['grape_compositions'] = [gc.to_dict() for gc in self.grape_compositions]
        return data

    def __repr__(self):
        return f'<Tank {self.name}>'


class Batch(BaseModel):
    """cuvée：作为一个生产单位追踪的一批酒，quantity 为目标总体积 (hL)"""
    __tablename__ = 'cellar_batches'

    name = db.Column(db.String(64), nullable=False)
    description = db.Column(db.String(255))
    quantity = db.Column(db.Float, nullable=False)

    user_id = db.Column(db.Integer, db.ForeignKey('auth_users.id'), nullable=False, index=True)
    process_id = db.Column(db.Integer, db.ForeignKey('prod_processes.id', ondelete='SET NULL'), nullable=True)

    user = db.relationship('User', backref=db.backref('batches', lazy='dynamic'))
    process = db.relationship('Process', backref='batches')
    tank_batches = db.relationship('TankBatch', backref='batch', cascade='all, delete-orphan')

    def to_record(self):
        return BatchRecord(
            id=self.id,
            name=self.name,
            quantity=self.quantity,
            description=self.description,
            created_at=self.created_at,
        )

    def __repr__(self):
        return f'<Batch {self.name}>'


class TankBatch(BaseModel):
    """酒罐 <-> cuvée 关联表，volume 为该 cuvée 在罐中的体积"""
    __tablename__ = 'cellar_tank_batches'
    __table_args__ = (db.UniqueConstraint('tank_id', 'batch_id', name='uq_tank_batch'),)

    tank_id = db.Column(db.Integer, db.ForeignKey('cellar_tanks.id'), nullable=False)
    batch_id = db.Column(db.Integer, db.ForeignKey('cellar_batches.id'), nullable=False)
    volume = db.Column(db.Float, nullable=False, default=0)

    def to_record(self):
        return TankBatchRecord(tank_id=self.tank_id, batch_id=self.batch_id, volume=self.volume)


class GrapeComposition(BaseModel):
    """
    罐内葡萄品种组成
    每个 (tank, grape_variety) 一行，percentage = volume / 罐容量 × 100
    """
    __tablename__ = 'cellar_grape_compositions'
    __table_args__ = (db.UniqueConstraint('tank_id', 'grape_variety', name='uq_tank_grape_variety'),)

    tank_id = db.Column(db.Integer, db.ForeignKey('cellar_tanks.id'), nullable=False)
    grape_variety = db.Column(db.String(32), nullable=False)
    volume = db.Column(db.Float, nullable=False, default=0)
    percentage = db.Column(db.Float, nullable=False, default=0)
    added_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_record(self):
        return GrapeCompositionRecord(
            tank_id=self.tank_id,
            grape_variety=self.grape_variety,
            volume=self.volume,
            percentage=self.percentage,
            added_at=self.added_at,
        )
