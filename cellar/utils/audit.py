"""
审计日志
入罐、出罐、分装、补货等操作都要能追溯到人和记录
"""
from functools import wraps
from flask import request
from flask_login import current_user
from cellar.models.sys import AuditLog
from cellar.extensions import db
import json


def log_action(module, action, details=None, target=None):
    """
    记录审计日志
    :param module: 模块名称 (如 'auth', 'cellar', 'stock')
    :param action: 操作名称 (如 'login_success', 'assign_plot', 'restock')
    :param details: 详细信息 (dict)，日期等非 JSON 类型转成字符串
    :param target: 被操作的记录 (模型实例)，记下表名和 ID
    """
    if not current_user.is_authenticated:
        return None

    entry = AuditLog(
        user_id=current_user.id,
        module=module,
        action=action,
        target_type=target.__tablename__ if target is not None else None,
        target_id=target.id if target is not None else None,
        ip_address=request.remote_addr,
        details=json.dumps(details, ensure_ascii=False, default=str) if details else None
    )
    db.session.add(entry)
    db.session.commit()
    return entry


def audit_log(module, action):
    """
    审计日志装饰器，URL 参数 (tank_id, stock_id ...) 记为详情
    视图抛异常 (校验失败等) 时不记录
    使用方法:
    @audit_log('stock', 'edit')
    def edit(stock_id):
        pass
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            result = f(*args, **kwargs)
            log_action(module, action, kwargs or None)
            return result
        return decorated_function
    return decorator
