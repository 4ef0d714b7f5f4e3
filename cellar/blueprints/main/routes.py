from flask import jsonify
from flask_login import login_required, current_user

from . import main_bp
from cellar.core.records import TankStatus
from cellar.models.cellar import Tank, Batch
from cellar.models.vineyard import Plot
from cellar.models.production import Action
from cellar.services.stock_service import StockService


def get_tank_status_data(tanks):
    """酒罐状态分布"""
    counts = {status: 0 for status in (TankStatus.EMPTY, TankStatus.IN_USE, TankStatus.MAINTENANCE)}
    for tank in tanks:
        counts[tank.status] = counts.get(tank.status, 0) + 1
    return counts


def get_grape_variety_data(tanks):
    """按品种汇总罐内体积"""
    totals = {}
    for tank in tanks:
        for gc in tank.grape_compositions:
            totals[gc.grape_variety] = totals.get(gc.grape_variety, 0) + gc.volume
    return [
        {'grape_variety': variety, 'volume': round(volume, 2)}
        for variety, volume in sorted(totals.items(), key=lambda kv: kv[1], reverse=True)
    ]


@main_bp.route('/')
@login_required
def index():
    """总览：酒罐、酒量、待采购与低库存"""
    tanks = Tank.owned_by(current_user).all()
    capacity = sum(t.capacity for t in tanks)
    wine_volume = sum(t.wine_volume for t in tanks)
    low_stocks = StockService.low_stocks(current_user)

    return jsonify({
        'success': True,
        'stats': {
            'tanks': len(tanks),
            'batches': Batch.owned_by(current_user).count(),
            'plots': Plot.owned_by(current_user).count(),
            'capacity': capacity,
            'wine_volume': round(wine_volume, 2),
            'fill_rate': round(wine_volume / capacity * 100, 1) if capacity else 0,
            'pending_purchases': Action.owned_by(current_user).filter_by(needs_purchase=True).count(),
        },
        'tank_status': get_tank_status_data(tanks),
        'grape_varieties': get_grape_variety_data(tanks),
        'low_stocks': [s.to_dict() for s in low_stocks],
    })
