# 按照依赖顺序导入
from .base import BaseModel
from .auth import User
from .cellar import Tank, Batch, TankBatch, GrapeComposition
from .vineyard import Plot, PlotTank
from .production import ActionType, Process, Action, Consumable
from .stock import Stock
from .sys import AuditLog
