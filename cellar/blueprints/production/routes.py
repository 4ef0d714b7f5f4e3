from flask import jsonify, request
from flask_login import login_required, current_user

from cellar.extensions import db
from cellar.blueprints.production import production_bp
from cellar.blueprints.production.forms import (
    ActionTypeForm, ActionForm, ConsumableForm, ConsumableEditForm, ProcessForm, AssignActionForm,
)
from cellar.core.scaling import calculate_scaled_quantities, format_scaled_consumable
from cellar.exceptions import NotFoundError, ValidationError
from cellar.models.cellar import Tank
from cellar.models.production import ActionType, Action, Consumable, Process
from cellar.services.draft_service import ConsumableDraftBook
from cellar.services.process_service import ProcessService
from cellar.services.production_service import ProductionService
from cellar.services.stock_service import StockService
from cellar.utils.audit import audit_log, log_action
from cellar.utils.lookup import get_owned
from cellar.utils.validators import validate_form


def get_action_type(type_id):
    action_type = db.session.get(ActionType, type_id)
    if action_type is None:
        raise NotFoundError("动作类型不存在", payload={'id': type_id})
    return action_type


def get_consumable(consumable_id):
    """辅料没有 user_id，通过所属动作校验归属"""
    consumable = db.session.get(Consumable, consumable_id)
    if consumable is None or consumable.action is None or consumable.action.user_id != current_user.id:
        raise NotFoundError("辅料不存在", payload={'id': consumable_id})
    return consumable


def action_payload(action):
    data = action.to_dict()
    data['tank'] = action.tank.name if action.tank else None
    data['process'] = action.process.name if action.process else None
    return data


# ============ 动作类型 ============

@production_bp.route('/action-types')
@login_required
def action_types():
    types = ActionType.query.order_by(ActionType.name.asc()).all()
    return jsonify({'success': True, 'action_types': [t.to_dict() for t in types]})


@production_bp.route('/action-types', methods=['POST'])
@login_required
@audit_log('production', 'create_action_type')
def create_action_type():
    form = validate_form(ActionTypeForm())
    name = form.name.data.strip().upper()
    if ActionType.query.filter_by(name=name).first():
        raise ValidationError(f"动作类型 {name} 已存在", payload={'errors': {'name': ['名称已存在']}})
    action_type = ActionType(name=name, description=form.description.data)
    action_type.save()
    return jsonify({'success': True, 'action_type': action_type.to_dict()}), 201


# ============ 生产动作 ============

@production_bp.route('/actions')
@login_required
def actions():
    """动作列表 (?tank_id= 过滤; ?templates=1 只看未分配流程的模板)"""
    query = Action.owned_by(current_user)
    tank_id = request.args.get('tank_id', type=int)
    if tank_id:
        query = query.filter_by(tank_id=tank_id)
    if request.args.get('templates'):
        query = query.filter(Action.process_id.is_(None))
    items = query.order_by(Action.id.desc()).all()
    return jsonify({'success': True, 'actions': [action_payload(a) for a in items]})


@production_bp.route('/actions', methods=['POST'])
@login_required
def create_action():
    form = validate_form(ActionForm())
    tank = get_owned(Tank, form.tank_id.data, '酒罐') if form.tank_id.data else None
    action = ProductionService.create_action(
        current_user,
        get_action_type(form.type_id.data),
        tank=tank,
        description=form.description.data,
        duration=form.duration.data,
        reference_volume=form.reference_volume.data,
        started_at=form.started_at.data,
        finished_at=form.finished_at.data,
    )
    log_action('production', 'create_action', target=action)
    return jsonify({'success': True, 'action': action_payload(action)}), 201


@production_bp.route('/actions/<int:action_id>')
@login_required
def action_detail(action_id):
    """动作详情，带辅料用量换算预览 (?target_volume=)"""
    action = get_owned(Action, action_id, '动作')
    data = action_payload(action)

    target_volume = request.args.get('target_volume', type=float)
    if target_volume:
        scaled = calculate_scaled_quantities(
            [c.to_record() for c in action.consumables], action.reference_volume, target_volume
        )
        data['scaled_consumables'] = [
            dict(s.to_dict(), display=format_scaled_consumable(s, show_original=True)) for s in scaled
        ]
    return jsonify({'success': True, 'action': data})


@production_bp.route('/actions/<int:action_id>/edit', methods=['POST'])
@login_required
@audit_log('production', 'edit_action')
def edit_action(action_id):
    action = get_owned(Action, action_id, '动作')
    form = validate_form(ActionForm())
    tank = get_owned(Tank, form.tank_id.data, '酒罐') if form.tank_id.data else None
    ProductionService.update_action(
        action,
        type=get_action_type(form.type_id.data),
        tank_id=tank.id if tank else None,
        description=form.description.data,
        duration=form.duration.data or 1,
        reference_volume=form.reference_volume.data,
        started_at=form.started_at.data,
        finished_at=form.finished_at.data,
    )
    return jsonify({'success': True, 'action': action_payload(action)})


@production_bp.route('/actions/<int:action_id>/delete', methods=['POST'])
@login_required
def delete_action(action_id):
    action = get_owned(Action, action_id, '动作')
    ProductionService.delete_action(action)
    log_action('production', 'delete_action', {'action': action_id})
    return jsonify({'success': True})


@production_bp.route('/actions/<int:action_id>/stock-check')
@login_required
def stock_check(action_id):
    action = get_owned(Action, action_id, '动作')
    return jsonify(dict(StockService.check_action(action), success=True))


@production_bp.route('/actions/<int:action_id>/complete', methods=['POST'])
@login_required
def complete_action(action_id):
    """执行动作并扣减库存；库存不足时照常扣减 (负库存)，返回缺货明细"""
    action = get_owned(Action, action_id, '动作')
    consumption = ProductionService.complete_action(action)
    log_action('production', 'complete_action', {'needs_purchase': action.needs_purchase}, target=action)
    return jsonify({
        'success': True,
        'stock_sufficient': consumption.success,
        'out_of_stock_items': [i.to_dict() for i in consumption.out_of_stock_items],
        'action': action_payload(action),
    })


# ============ 辅料 ============

@production_bp.route('/actions/<int:action_id>/consumables', methods=['POST'])
@login_required
def add_consumable(action_id):
    """添加辅料，同名同类别时累加用量"""
    action = get_owned(Action, action_id, '动作')
    form = validate_form(ConsumableForm())
    ProductionService.save_consumables(action, [{
        'name': form.name.data,
        'unit': form.unit.data,
        'quantity': form.quantity.data,
        'description': form.description.data,
        'commodity': form.commodity.data,
    }])
    return jsonify({'success': True, 'action': action_payload(action)}), 201


@production_bp.route('/consumables/<int:consumable_id>/edit', methods=['POST'])
@login_required
def edit_consumable(consumable_id):
    consumable = get_consumable(consumable_id)
    form = validate_form(ConsumableEditForm())
    ProductionService.update_consumable(
        consumable,
        name=form.name.data,
        unit=form.unit.data,
        quantity=form.quantity.data or 0,
        description=form.description.data,
        commodity=form.commodity.data,
    )
    return jsonify({'success': True, 'consumable': consumable.to_dict()})


@production_bp.route('/consumables/<int:consumable_id>/delete', methods=['POST'])
@login_required
def delete_consumable(consumable_id):
    consumable = get_consumable(consumable_id)
    ProductionService.delete_consumable(consumable)
    return jsonify({'success': True})


# ============ 辅料草稿 ============

@production_bp.route('/actions/<int:action_id>/drafts')
@login_required
def list_drafts(action_id):
    action = get_owned(Action, action_id, '动作')
    return jsonify({'success': True, 'drafts': ConsumableDraftBook().list(action.id)})


@production_bp.route('/actions/<int:action_id>/drafts', methods=['POST'])
@login_required
def stage_draft(action_id):
    action = get_owned(Action, action_id, '动作')
    form = validate_form(ConsumableForm())
    count = ConsumableDraftBook().stage(action.id, {
        'name': form.name.data,
        'unit': form.unit.data,
        'quantity': form.quantity.data,
        'description': form.description.data,
        'commodity': form.commodity.data,
    })
    return jsonify({'success': True, 'count': count}), 201


@production_bp.route('/actions/<int:action_id>/drafts/discard', methods=['POST'])
@login_required
def discard_drafts(action_id):
    action = get_owned(Action, action_id, '动作')
    removed = ConsumableDraftBook().discard(action.id)
    return jsonify({'success': True, 'discarded': removed})


@production_bp.route('/actions/<int:action_id>/drafts/flush', methods=['POST'])
@login_required
def flush_drafts(action_id):
    action = get_owned(Action, action_id, '动作')
    saved = ConsumableDraftBook().flush(action)
    log_action('production', 'save_consumables', {'count': len(saved)}, target=action)
    return jsonify({'success': True, 'saved': len(saved), 'action': action_payload(action)})


# ============ 工艺流程 ============

@production_bp.route('/processes')
@login_required
def processes():
    items = Process.owned_by(current_user).order_by(Process.id.desc()).all()
    return jsonify({
        'success': True,
        'processes': [
            dict(p.to_dict(), actions=len(p.actions), batches=[b.name for b in p.batches])
            for p in items
        ],
    })


@production_bp.route('/processes', methods=['POST'])
@login_required
@audit_log('production', 'create_process')
def create_process():
    form = validate_form(ProcessForm())
    process = ProcessService.create_process(
        current_user, form.name.data, form.description.data, form.start_date.data
    )
    return jsonify({'success': True, 'process': process.to_dict()}), 201


@production_bp.route('/processes/<int:process_id>')
@login_required
def process_detail(process_id):
    process = get_owned(Process, process_id, '工艺流程')
    data = process.to_dict()
    data['target_volume'] = ProcessService.target_volume(process)
    data['actions'] = [action_payload(a) for a in process.actions]
    data['batches'] = [{'id': b.id, 'name': b.name} for b in process.batches]
    return jsonify({'success': True, 'process': data})


@production_bp.route('/processes/<int:process_id>/delete', methods=['POST'])
@login_required
def delete_process(process_id):
    process = get_owned(Process, process_id, '工艺流程')
    ProcessService.delete_process(process)
    log_action('production', 'delete_process', {'process': process_id})
    return jsonify({'success': True})


@production_bp.route('/processes/<int:process_id>/actions', methods=['POST'])
@login_required
def assign_action(process_id):
    """把动作分配到流程，辅料用量按 cuvée 所在罐的容量换算"""
    process = get_owned(Process, process_id, '工艺流程')
    form = validate_form(AssignActionForm())
    action = get_owned(Action, form.action_id.data, '动作')

    ProcessService.assign_action(process, action, form.assigned_date.data)
    log_action('production', 'assign_action', {'process': process.id}, target=action)
    return jsonify({'success': True, 'action': action_payload(action)})


@production_bp.route('/processes/<int:process_id>/actions/<int:action_id>/remove', methods=['POST'])
@login_required
def unassign_action(process_id, action_id):
    process = get_owned(Process, process_id, '工艺流程')
    action = get_owned(Action, action_id, '动作')
    if action.process_id != process.id:
        raise ValidationError("该动作不属于此工艺流程")

    ProcessService.unassign_action(action)
    log_action('production', 'unassign_action', {'process': process.id}, target=action)
    return jsonify({'success': True, 'action': action_payload(action)})
