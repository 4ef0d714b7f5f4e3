import logging
import colorlog
from flask import Flask, jsonify
from config import config
from cellar.extensions import db, migrate, login_manager, csrf
from cellar.exceptions import CellarException

from cellar import commands


def create_app(config_name='default'):
    """酒窖管理应用工厂函数"""
    app = Flask(__name__)

    # 1. 加载配置
    app.config.from_object(config[config_name])
    config[config_name].init_app(app)

    # 2. 初始化扩展
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)

    # 3. 配置日志
    configure_logging(app)

    # 4. 注册蓝图 (Blueprints)
    register_blueprints(app)

    # 5. 注册全局错误处理
    register_error_handlers(app)

    # 6. 注册 CLI 命令
    register_commands(app)

    return app


def register_blueprints(app):
    """注册所有业务模块蓝图"""
    # 总览
    from cellar.blueprints.main import main_bp
    app.register_blueprint(main_bp)

    # 认证
    from cellar.blueprints.auth import auth_bp
    app.register_blueprint(auth_bp, url_prefix='/auth')

    # 酒罐 (我的酒窖)
    from cellar.blueprints.tanks import tanks_bp
    app.register_blueprint(tanks_bp, url_prefix='/my-cellar')

    # cuvée
    from cellar.blueprints.batch import batch_bp
    app.register_blueprint(batch_bp, url_prefix='/batch')

    # 葡萄园地块
    from cellar.blueprints.vineyard import vineyard_bp
    app.register_blueprint(vineyard_bp, url_prefix='/vineyard')

    # 生产动作与工艺流程
    from cellar.blueprints.production import production_bp
    app.register_blueprint(production_bp, url_prefix='/production')

    # 辅料库存
    from cellar.blueprints.stock import stock_bp
    app.register_blueprint(stock_bp, url_prefix='/stock')


def register_error_handlers(app):
    @app.errorhandler(CellarException)
    def handle_cellar_exception(e):
        return jsonify(e.to_dict()), e.code

    @app.errorhandler(404)
    def page_not_found(e):
        return jsonify({'message': 'Not found', 'code': 404, 'success': False}), 404

    @app.errorhandler(500)
    def internal_server_error(e):
        return jsonify({'message': 'Internal server error', 'code': 500, 'success': False}), 500


def register_commands(app):
    """注册 Flask CLI 命令"""
    app.cli.add_command(commands.seed)
    app.cli.add_command(commands.status)


def configure_logging(app):
    """配置彩色控制台日志，提升开发体验"""
    if app.debug:
        handler = logging.StreamHandler()
        handler.setLevel(logging.INFO)

        formatter = colorlog.ColoredFormatter(
            "%(log_color)s[%(asctime)s] %(levelname)-8s%(reset)s %(blue)s%(message)s",
            datefmt="%H:%M:%S",
            reset=True,
            log_colors={
                'DEBUG':    'cyan',
                'INFO':     'green',
                'WARNING':  'yellow',
                'ERROR':    'red',
                'CRITICAL': 'red,bg_white',
            },
            secondary_log_colors={},
            style='%'
        )
        handler.setFormatter(formatter)
        app.logger.addHandler(handler)
        app.logger.setLevel(logging.INFO)
