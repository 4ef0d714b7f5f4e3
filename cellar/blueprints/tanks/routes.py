from flask import jsonify, request, send_file
from flask_login import login_required, current_user

from cellar.extensions import db
from cellar.blueprints.tanks import tanks_bp
from cellar.blueprints.tanks.forms import TankForm, AssignPlotForm, RemoveWineForm, AllocateBatchForm
from cellar.core.records import TankStatus
from cellar.exceptions import ValidationError
from cellar.models.cellar import Tank, Batch
from cellar.models.vineyard import Plot
from cellar.services.allocation_service import AllocationService
from cellar.services.cellar_service import CellarService
from cellar.services.export_service import ExportService, COMPOSITION_COLUMNS
from cellar.utils.audit import audit_log, log_action
from cellar.utils.lookup import get_owned
from cellar.utils.validators import validate_form


def tank_detail(tank):
    data = tank.to_dict()
    data['plot_tanks'] = [
        dict(pt.to_dict(), plot=pt.plot.name, grape_variety=pt.plot.grape_variety)
        for pt in tank.plot_tanks
    ]
    data['batches'] = [
        {'batch_id': link.batch_id, 'name': link.batch.name, 'volume': link.volume}
        for link in tank.tank_batches
    ]
    data['actions'] = [
        {
            'id': a.id,
            'type': a.type.name if a.type else None,
            'started_at': a.started_at.isoformat() if a.started_at else None,
            'is_completed': a.is_completed,
            'needs_purchase': a.needs_purchase,
        }
        for a in sorted(tank.actions, key=lambda a: a.id)
    ]
    return data


@tanks_bp.route('/')
@login_required
def index():
    """酒罐列表，可按状态过滤 (?status=EMPTY|IN_USE|MAINTENANCE|ALL)"""
    status = request.args.get('status', 'ALL').upper()
    query = Tank.owned_by(current_user)
    if status in TankStatus.ALL:
        query = query.filter_by(status=status)
    tanks = query.order_by(Tank.name.asc()).all()
    return jsonify({'success': True, 'tanks': [t.to_dict() for t in tanks]})


@tanks_bp.route('/', methods=['POST'])
@login_required
@audit_log('cellar', 'create_tank')
def create():
    form = validate_form(TankForm())
    tank = Tank(
        name=form.name.data,
        description=form.description.data,
        material=form.material.data,
        status=form.status.data,
        capacity=form.capacity.data,
        user_id=current_user.id,
    )
    tank.save()
    return jsonify({'success': True, 'tank': tank.to_dict()}), 201


@tanks_bp.route('/<int:tank_id>')
@login_required
def detail(tank_id):
    tank = get_owned(Tank, tank_id, '酒罐')
    return jsonify({'success': True, 'tank': tank_detail(tank)})


@tanks_bp.route('/<int:tank_id>/edit', methods=['POST'])
@login_required
@audit_log('cellar', 'edit_tank')
def edit(tank_id):
    tank = get_owned(Tank, tank_id, '酒罐')
    form = validate_form(TankForm())
    # 容量不能小于罐内已有的酒，也不能小于已分配给 cuvée 的体积
    load = max(tank.wine_volume, tank.to_record(AllocationService.mode()).allocated_volume)
    if form.capacity.data < load:
        raise ValidationError(
            f"容量不能小于罐内现有体积: {load:.1f} hL",
            payload={'field': 'capacity', 'limit': load}
        )
    tank.name = form.name.data
    tank.description = form.description.data
    tank.material = form.material.data
    tank.status = form.status.data
    tank.capacity = form.capacity.data
    db.session.commit()
    return jsonify({'success': True, 'tank': tank.to_dict()})


@tanks_bp.route('/<int:tank_id>/delete', methods=['POST'])
@login_required
def delete(tank_id):
    tank = get_owned(Tank, tank_id, '酒罐')
    name = tank.name
    tank.delete()
    log_action('cellar', 'delete_tank', {'tank': name})
    return jsonify({'success': True})


@tanks_bp.route('/<int:tank_id>/plots', methods=['POST'])
@login_required
def assign_plot(tank_id):
    """地块收成入罐"""
    tank = get_owned(Tank, tank_id, '酒罐')
    form = validate_form(AssignPlotForm())
    plot = get_owned(Plot, form.plot_id.data, '地块')

    result = CellarService.assign_plot_to_tank(
        tank, plot, form.volume.data, current_user,
        harvest_date=form.harvest_date.data,
        yield_ratio=form.yield_ratio.data,
    )
    log_action('cellar', 'assign_plot', {'plot': plot.id, 'volume': form.volume.data}, target=tank)
    return jsonify({
        'success': True,
        'tank': tank_detail(tank),
        'composition': result['composition'].to_dict(),
        'composition_created': result['composition_created'],
    }), 201


@tanks_bp.route('/<int:tank_id>/remove-wine', methods=['POST'])
@login_required
def remove_wine(tank_id):
    """出罐装瓶，生成新的 cuvée"""
    tank = get_owned(Tank, tank_id, '酒罐')
    form = validate_form(RemoveWineForm())

    result = CellarService.remove_wine(
        tank, form.volume.data, current_user,
        name=form.name.data or None,
        created_at=form.created_at.data,
    )
    log_action('cellar', 'remove_wine', {'volume': form.volume.data, 'batch': result['batch'].id}, target=tank)
    return jsonify({
        'success': True,
        'tank': tank_detail(tank),
        'batch': result['batch'].to_dict(),
    }), 201


@tanks_bp.route('/<int:tank_id>/batches', methods=['POST'])
@login_required
def allocate_batch(tank_id):
    """把 cuvée 分装进酒罐"""
    tank = get_owned(Tank, tank_id, '酒罐')
    form = validate_form(AllocateBatchForm())
    batch = get_owned(Batch, form.batch_id.data, 'cuvée')

    AllocationService.allocate(batch, tank, form.volume.data)
    log_action('cellar', 'allocate_batch', {'batch': batch.id, 'volume': form.volume.data}, target=tank)
    return jsonify({
        'success': True,
        'allocation': AllocationService.batch_allocation(batch).to_dict(),
    }), 201


@tanks_bp.route('/<int:tank_id>/batches/<int:batch_id>/release', methods=['POST'])
@login_required
def release_batch(tank_id, batch_id):
    tank = get_owned(Tank, tank_id, '酒罐')
    batch = get_owned(Batch, batch_id, 'cuvée')

    AllocationService.release(batch, tank)
    log_action('cellar', 'release_batch', {'batch': batch.id}, target=tank)
    return jsonify({
        'success': True,
        'allocation': AllocationService.batch_allocation(batch).to_dict(),
    })


@tanks_bp.route('/export')
@login_required
def export():
    """导出酒罐品种组成 (?format=excel|csv)"""
    tanks = CellarService.tanks_for_user(current_user)
    output, filename, mimetype = ExportService.export(
        ExportService.composition_rows(tanks),
        COMPOSITION_COLUMNS,
        request.args.get('format', 'excel'),
        name='compositions',
        title='酒罐品种组成',
    )
    return send_file(output, mimetype=mimetype, as_attachment=True, download_name=filename)
