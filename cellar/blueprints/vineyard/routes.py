from flask import jsonify, request, current_app
from flask_login import login_required, current_user

from cellar.extensions import db
from cellar.blueprints.vineyard import vineyard_bp
from cellar.blueprints.vineyard.forms import PlotForm
from cellar.core.records import GRAPE_VARIETIES
from cellar.models.vineyard import Plot
from cellar.utils.audit import audit_log, log_action
from cellar.utils.lookup import get_owned
from cellar.utils.validators import validate_form


def plot_payload(plot, yield_ratio):
    data = plot.to_dict()
    data['max_volume'] = plot.to_record().max_volume(yield_ratio)
    data['transferred_volume'] = plot.transferred_volume
    data['remaining_volume'] = plot.remaining_volume(yield_ratio)
    return data


def current_yield_ratio():
    """?yield_ratio= 覆盖默认出酒率，超出范围时回落到默认值"""
    default = current_app.config['DEFAULT_YIELD_RATIO']
    value = request.args.get('yield_ratio', default, type=float)
    if not current_app.config['YIELD_RATIO_MIN'] <= value <= current_app.config['YIELD_RATIO_MAX']:
        return default
    return value


@vineyard_bp.route('/')
@login_required
def index():
    yield_ratio = current_yield_ratio()
    plots = Plot.owned_by(current_user).order_by(Plot.name.asc()).all()
    return jsonify({
        'success': True,
        'yield_ratio': yield_ratio,
        'plots': [plot_payload(p, yield_ratio) for p in plots],
    })


@vineyard_bp.route('/grape-varieties')
@login_required
def grape_varieties():
    return jsonify({'success': True, 'grape_varieties': list(GRAPE_VARIETIES)})


@vineyard_bp.route('/', methods=['POST'])
@login_required
@audit_log('vineyard', 'create_plot')
def create():
    form = validate_form(PlotForm())
    plot = Plot(
        name=form.name.data,
        description=form.description.data,
        surface=form.surface.data,
        grape_variety=form.grape_variety.data.strip().upper(),
        user_id=current_user.id,
    )
    plot.save()
    return jsonify({'success': True, 'plot': plot_payload(plot, current_yield_ratio())}), 201


@vineyard_bp.route('/<int:plot_id>')
@login_required
def detail(plot_id):
    plot = get_owned(Plot, plot_id, '地块')
    data = plot_payload(plot, current_yield_ratio())
    data['transfers'] = [
        dict(pt.to_dict(), tank=pt.tank.name) for pt in plot.plot_tanks
    ]
    return jsonify({'success': True, 'plot': data})


@vineyard_bp.route('/<int:plot_id>/edit', methods=['POST'])
@login_required
@audit_log('vineyard', 'edit_plot')
def edit(plot_id):
    plot = get_owned(Plot, plot_id, '地块')
    form = validate_form(PlotForm())
    plot.name = form.name.data
    plot.description = form.description.data
    plot.surface = form.surface.data
    plot.grape_variety = form.grape_variety.data.strip().upper()
    db.session.commit()
    return jsonify({'success': True, 'plot': plot_payload(plot, current_yield_ratio())})


@vineyard_bp.route('/<int:plot_id>/delete', methods=['POST'])
@login_required
def delete(plot_id):
    plot = get_owned(Plot, plot_id, '地块')
    name = plot.name
    plot.delete()
    log_action('vineyard', 'delete_plot', {'plot': name})
    return jsonify({'success': True})
