"""
计算核心使用的记录类型

这些记录是 ORM 行的只读快照 (见各模型的 to_record)，
计算函数只读取它们并返回新的记录，从不做 I/O。
体积单位统一为 hL。
"""
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple


class TankStatus:
    EMPTY = 'EMPTY'
    IN_USE = 'IN_USE'
    MAINTENANCE = 'MAINTENANCE'

    ALL = (EMPTY, IN_USE, MAINTENANCE)


class TankMaterial:
    INOX = 'INOX'
    BETON = 'BETON'
    BOIS = 'BOIS'
    PLASTIQUE = 'PLASTIQUE'

    ALL = (INOX, BETON, BOIS, PLASTIQUE)


class CommodityType:
    FERMENTATION_ADDITIVES = 'FERMENTATION_ADDITIVES'
    STABILIZATION_CLARIFICATION = 'STABILIZATION_CLARIFICATION'
    ORGANOLEPTIC_CORRECTION = 'ORGANOLEPTIC_CORRECTION'
    ENERGY = 'ENERGY'
    ANALYSIS_LAB = 'ANALYSIS_LAB'
    FILTRATION = 'FILTRATION'
    PACKAGING = 'PACKAGING'

    ALL = (
        FERMENTATION_ADDITIVES, STABILIZATION_CLARIFICATION, ORGANOLEPTIC_CORRECTION,
        ENERGY, ANALYSIS_LAB, FILTRATION, PACKAGING,
    )


GRAPE_VARIETIES = (
    'CHARDONNAY', 'UGNI_BLANC', 'SAUVIGNON_BLANC', 'CHERRY_BLANC', 'GEWURZTRAMINER',
    'RIESLING', 'PINOT_BLANC', 'PINOT_GRIS', 'MELON_DE_BOURGOGNE', 'CLAIRETTE',
    'MUSCAT_BLANCS', 'ALIGOTE', 'VIOGNIER', 'MARSANE', 'ROUSSE', 'PICPOUL',
    'SAVAGNIN', 'SEMILLON', 'BOURBOULENC', 'COLOMBARD', 'FOLLE_BLANCHE',
    'MERLOT', 'GRENACHE_NOIR', 'SYRAH', 'CABERNET_SAUVIGNON', 'CARIGNAN',
    'PINOT_NOIR', 'GAMAY', 'CABERNET_FRANC', 'CINSAUT', 'MOURVEDRE', 'TANNAT',
    'MALBEC', 'MONDEUSE',
)


class AllocationMode(Enum):
    """
    cuvée 与酒罐的两种关联方式
    SINGLE: 旧模型，Tank.batch_id + Tank.allocated_volume，一个罐只装一个 cuvée
    MULTI:  关联表 tank_batches，一个罐可分装多个 cuvée (默认)
    """
    SINGLE = 'single'
    MULTI = 'multi'


class AllocationPolicy(Enum):
    """候选酒罐排序策略"""
    BEST_FIT = 'best_fit'    # 可用容量小的优先
    WORST_FIT = 'worst_fit'  # 可用容量大的优先


@dataclass(frozen=True)
class TankRecord:
    id: Optional[int]
    name: str
    capacity: float
    allocated_volume: float = 0.0
    status: str = TankStatus.EMPTY
    material: str = TankMaterial.INOX
    batch_id: Optional[int] = None

    @property
    def available_capacity(self) -> float:
        return self.capacity - self.allocated_volume


@dataclass(frozen=True)
class BatchRecord:
    id: Optional[int]
    name: str
    quantity: float
    description: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class TankBatchRecord:
    tank_id: Optional[int]
    batch_id: Optional[int]
    volume: float


@dataclass(frozen=True)
class PlotRecord:
    id: Optional[int]
    name: str
    surface: float
    grape_variety: str

    def max_volume(self, yield_ratio: float) -> float:
        """理论最大产量 (hL) = 面积 (ha) × 出酒率 (hL/ha)"""
        return self.surface * yield_ratio


@dataclass(frozen=True)
class PlotTankRecord:
    plot_id: Optional[int]
    tank_id: Optional[int]
    volume: float
    harvest_date: Optional[datetime] = None


@dataclass(frozen=True)
class GrapeCompositionRecord:
    tank_id: Optional[int]
    grape_variety: str
    volume: float
    percentage: float
    added_at: Optional[datetime] = None


@dataclass(frozen=True)
class ConsumableRecord:
    name: str
    unit: str
    quantity: float
    original_quantity: Optional[float] = None
    id: Optional[int] = None
    description: Optional[str] = None
    commodity: Optional[str] = None

    def with_quantities(self, quantity: float, original_quantity: Optional[float]) -> 'ConsumableRecord':
        return replace(self, quantity=quantity, original_quantity=original_quantity)


@dataclass(frozen=True)
class StockRecord:
    name: str
    unit: str
    quantity: float
    minimum_qty: float = 0.0
    id: Optional[int] = None
    is_out_of_stock: bool = False


@dataclass(frozen=True)
class ActionRecord:
    """待写入的可追溯操作 (REMPLISSAGE / CONDITIONNEMENT ...)"""
    type_name: str
    tank_id: Optional[int]
    started_at: datetime
    finished_at: datetime
    duration: int = 1
    is_completed: bool = True
    needs_purchase: bool = False


@dataclass(frozen=True)
class TankAllocation:
    id: Optional[int]
    name: str
    capacity: float
    allocated_volume: float
    utilization_percentage: int


@dataclass(frozen=True)
class BatchAllocation:
    batch_id: Optional[int]
    batch_name: str
    total_volume: float
    allocated_volume: float
    remaining_volume: float
    progress_percentage: int
    is_fully_allocated: bool
    tanks: Tuple[TankAllocation, ...] = field(default_factory=tuple)

    def to_dict(self):
        return {
            'batchId': self.batch_id,
            'batchName': self.batch_name,
            'totalVolume': self.total_volume,
            'allocatedVolume': self.allocated_volume,
            'remainingVolume': self.remaining_volume,
            'progressPercentage': self.progress_percentage,
            'isFullyAllocated': self.is_fully_allocated,
            'tanks': [
                {
                    'id': t.id,
                    'name': t.name,
                    'capacity': t.capacity,
                    'allocatedVolume': t.allocated_volume,
                    'utilizationPercentage': t.utilization_percentage,
                }
                for t in self.tanks
            ],
        }


@dataclass(frozen=True)
class AllocationSuggestion:
    tank_id: Optional[int]
    tank_name: str
    suggested_volume: float

    def to_dict(self):
        return {'tankId': self.tank_id, 'tankName': self.tank_name, 'suggestedVolume': self.suggested_volume}
