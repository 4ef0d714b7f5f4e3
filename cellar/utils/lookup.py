from flask_login import current_user
from cellar.extensions import db
from cellar.exceptions import NotFoundError


def get_owned(model, record_id, label=None, user=None):
    """
    按 ID 读取当前用户拥有的记录
    不存在或不属于该用户时抛 NotFoundError
    """
    owner = user or current_user
    record = db.session.get(model, record_id) if record_id is not None else None
    if record is None or record.user_id != owner.id:
        raise NotFoundError(f"{label or model.__name__} 不存在", payload={'id': record_id})
    return record
