from flask import jsonify, request, send_file
from flask_login import login_required, current_user

from cellar.blueprints.stock import stock_bp
from cellar.blueprints.stock.forms import StockForm, RestockForm
from cellar.models.stock import Stock
from cellar.services.export_service import ExportService, STOCK_COLUMNS
from cellar.services.stock_service import StockService
from cellar.utils.audit import audit_log, log_action
from cellar.utils.lookup import get_owned
from cellar.utils.validators import validate_form


def list_stocks():
    query = Stock.owned_by(current_user)
    keyword = request.args.get('q', '').strip()
    if keyword:
        query = query.filter(Stock.name.ilike(f"%{keyword}%"))
    if request.args.get('low'):
        query = query.filter(Stock.quantity <= Stock.minimum_qty)
    return query.order_by(Stock.name.asc()).all()


@stock_bp.route('/')
@login_required
def index():
    """库存列表 (?q= 名称搜索, ?low=1 只看缺货)"""
    stocks = list_stocks()
    return jsonify({
        'success': True,
        'low_stock_count': len(StockService.low_stocks(current_user)),
        'stocks': [s.to_dict() for s in stocks],
    })


@stock_bp.route('/', methods=['POST'])
@login_required
@audit_log('stock', 'create')
def create():
    form = validate_form(StockForm())
    stock = StockService.create_stock(
        current_user,
        name=form.name.data.strip(),
        unit=form.unit.data.strip(),
        quantity=form.quantity.data or 0,
        minimum_qty=form.minimum_qty.data or 0,
        description=form.description.data,
    )
    return jsonify({'success': True, 'stock': stock.to_dict()}), 201


@stock_bp.route('/<int:stock_id>/edit', methods=['POST'])
@login_required
@audit_log('stock', 'edit')
def edit(stock_id):
    stock = get_owned(Stock, stock_id, '库存')
    form = validate_form(StockForm())
    StockService.update_stock(
        stock,
        name=form.name.data.strip(),
        unit=form.unit.data.strip(),
        quantity=form.quantity.data or 0,
        minimum_qty=form.minimum_qty.data or 0,
        description=form.description.data,
    )
    return jsonify({'success': True, 'stock': stock.to_dict()})


@stock_bp.route('/<int:stock_id>/restock', methods=['POST'])
@login_required
def restock(stock_id):
    stock = get_owned(Stock, stock_id, '库存')
    form = validate_form(RestockForm())
    StockService.restock(stock, form.quantity.data)
    log_action('stock', 'restock', {'quantity': form.quantity.data}, target=stock)
    return jsonify({'success': True, 'stock': stock.to_dict()})


@stock_bp.route('/<int:stock_id>/delete', methods=['POST'])
@login_required
def delete(stock_id):
    stock = get_owned(Stock, stock_id, '库存')
    name = stock.name
    stock.delete()
    log_action('stock', 'delete', {'stock': name})
    return jsonify({'success': True})


@stock_bp.route('/export')
@login_required
def export():
    """导出库存清单 (?format=excel|csv)"""
    output, filename, mimetype = ExportService.export(
        ExportService.stock_rows(list_stocks()),
        STOCK_COLUMNS,
        request.args.get('format', 'excel'),
        name='stocks',
        title='辅料库存',
    )
    return send_file(output, mimetype=mimetype, as_attachment=True, download_name=filename)
