from flask import jsonify, request
from flask_login import login_required, current_user

from cellar.extensions import db
from cellar.blueprints.batch import batch_bp
from cellar.blueprints.batch.forms import BatchForm, AssignProcessForm
from cellar.core.allocation import format_allocation_progress
from cellar.core.records import AllocationPolicy
from cellar.core.rounding import percentage
from cellar.exceptions import ValidationError
from cellar.models.cellar import Batch
from cellar.models.production import Process
from cellar.services.allocation_service import AllocationService
from cellar.services.process_service import ProcessService
from cellar.utils.audit import audit_log, log_action
from cellar.utils.lookup import get_owned
from cellar.utils.validators import validate_form


def parse_policy(default):
    """?policy=best_fit|worst_fit"""
    value = request.args.get('policy')
    if not value:
        return default
    try:
        return AllocationPolicy(value.lower())
    except ValueError:
        raise ValidationError(f"未知的分装策略: {value}", payload={'field': 'policy'})


def batch_payload(batch):
    allocation = AllocationService.batch_allocation(batch)
    data = batch.to_dict()
    data['process'] = batch.process.name if batch.process else None
    data['allocation'] = allocation.to_dict()
    data['progress'] = format_allocation_progress(allocation)
    return data


@batch_bp.route('/')
@login_required
def index():
    """cuvée 列表，附已分装体积与进度"""
    rows = []
    for batch, allocated in AllocationService.overview(current_user):
        data = batch.to_dict()
        data['allocated_volume'] = allocated
        data['progress_percentage'] = percentage(allocated, batch.quantity)
        rows.append(data)
    return jsonify({'success': True, 'batches': rows})


@batch_bp.route('/', methods=['POST'])
@login_required
@audit_log('batch', 'create')
def create():
    form = validate_form(BatchForm())
    batch = Batch(
        name=form.name.data,
        description=form.description.data,
        quantity=form.quantity.data,
        user_id=current_user.id,
    )
    batch.save()
    return jsonify({'success': True, 'batch': batch_payload(batch)}), 201


@batch_bp.route('/<int:batch_id>')
@login_required
def detail(batch_id):
    batch = get_owned(Batch, batch_id, 'cuvée')
    return jsonify({'success': True, 'batch': batch_payload(batch)})


@batch_bp.route('/<int:batch_id>/edit', methods=['POST'])
@login_required
@audit_log('batch', 'edit')
def edit(batch_id):
    batch = get_owned(Batch, batch_id, 'cuvée')
    form = validate_form(BatchForm())

    allocated = AllocationService.batch_allocation(batch).allocated_volume
    if form.quantity.data < allocated:
        raise ValidationError(
            f"总体积不能小于已分装体积: {allocated:.1f} hL",
            payload={'field': 'quantity', 'limit': allocated}
        )

    batch.name = form.name.data
    batch.description = form.description.data
    batch.quantity = form.quantity.data
    db.session.commit()
    return jsonify({'success': True, 'batch': batch_payload(batch)})


@batch_bp.route('/<int:batch_id>/delete', methods=['POST'])
@login_required
def delete(batch_id):
    batch = get_owned(Batch, batch_id, 'cuvée')
    # 旧模型下释放占用的罐
    for tank in list(batch.legacy_tanks):
        tank.batch_id = None
        tank.allocated_volume = 0
    name = batch.name
    batch.delete()
    log_action('batch', 'delete', {'batch': name})
    return jsonify({'success': True})


@batch_bp.route('/<int:batch_id>/suggestions')
@login_required
def suggestions(batch_id):
    """剩余体积的分装建议，默认 worst_fit (大罐优先)"""
    batch = get_owned(Batch, batch_id, 'cuvée')
    policy = parse_policy(AllocationPolicy.WORST_FIT)
    min_volume = request.args.get('min_volume', 0, type=float)

    items = AllocationService.suggestions(batch, policy, min_volume)
    return jsonify({
        'success': True,
        'policy': policy.value,
        'suggestions': [s.to_dict() for s in items],
    })


@batch_bp.route('/available-tanks')
@login_required
def available_tanks():
    """能容纳 ?volume= 的空闲酒罐，默认 best_fit (小罐优先)"""
    volume = request.args.get('volume', 0, type=float)
    policy = parse_policy(AllocationPolicy.BEST_FIT)

    tanks = AllocationService.available_tanks(current_user, volume, policy)
    return jsonify({
        'success': True,
        'policy': policy.value,
        'tanks': [
            {
                'id': t.id,
                'name': t.name,
                'capacity': t.capacity,
                'availableCapacity': t.available_capacity,
            }
            for t in tanks
        ],
    })


@batch_bp.route('/<int:batch_id>/process', methods=['POST'])
@login_required
def assign_process(batch_id):
    batch = get_owned(Batch, batch_id, 'cuvée')
    form = validate_form(AssignProcessForm())
    process = get_owned(Process, form.process_id.data, '工艺流程')

    ProcessService.assign_to_batch(batch, process)
    log_action('batch', 'assign_process', {'process': process.id}, target=batch)
    return jsonify({'success': True, 'batch': batch_payload(batch)})


@batch_bp.route('/<int:batch_id>/process/remove', methods=['POST'])
@login_required
def unassign_process(batch_id):
    batch = get_owned(Batch, batch_id, 'cuvée')
    ProcessService.unassign_from_batch(batch)
    log_action('batch', 'unassign_process', target=batch)
    return jsonify({'success': True, 'batch': batch_payload(batch)})
