from datetime import datetime
from cellar.extensions import db
from cellar.core.records import PlotRecord, PlotTankRecord
from .base import BaseModel


class Plot(BaseModel):
    """葡萄园地块 (parcelle)，surface 单位为公顷"""
    __tablename__ = 'cellar_plots'

    name = db.Column(db.String(64), nullable=False)
    description = db.Column(db.String(255))
    surface = db.Column(db.Float, nullable=False)
    grape_variety = db.Column(db.String(32), nullable=False)

    user_id = db.Column(db.Integer, db.ForeignKey('auth_users.id'), nullable=False, index=True)

    user = db.relationship('User', backref=db.backref('plots', lazy='dynamic'))
    plot_tanks = db.relationship('PlotTank', backref='plot', cascade='all, delete-orphan')

    @property
    def transferred_volume(self):
        """已转入酒罐的总体积"""
        return sum(pt.volume for pt in self.plot_tanks)

    def remaining_volume(self, yield_ratio):
        """按出酒率还能转入的理论体积"""
        return max(0, self.surface * yield_ratio - self.transferred_volume)

    def to_record(self):
        return PlotRecord(
            id=self.id,
            name=self.name,
            surface=self.surface,
            grape_variety=self.grape_variety,
        )

    def __repr__(self):
        return f'<Plot {self.name}>'


class PlotTank(BaseModel):
    """入罐记录：某地块的 volume hL 收成在 harvest_date 转入某酒罐"""
    __tablename__ = 'cellar_plot_tanks'

    plot_id = db.Column(db.Integer, db.ForeignKey('cellar_plots.id'), nullable=False)
    tank_id = db.Column(db.Integer, db.ForeignKey('cellar_tanks.id'), nullable=False)
    volume = db.Column(db.Float, nullable=False)
    harvest_date = db.Column(db.DateTime, nullable=True)
    transfer_date = db.Column(db.DateTime, default=datetime.utcnow)

    def to_record(self):
        return PlotTankRecord(
            plot_id=self.plot_id,
            tank_id=self.tank_id,
            volume=self.volume,
            harvest_date=self.harvest_date,
        )
