"""
事务边界

多记录的 读-算-写 序列 (入罐、出罐、分装、扣库存...) 必须整体提交或整体回滚。
"""
from contextlib import contextmanager
from flask import current_app
from cellar.extensions import db


@contextmanager
def atomic():
    """
    用法:
        with atomic():
            ... # 读取、计算、写入
        # 正常结束 commit，任何异常 rollback 后原样抛出
    """
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        current_app.logger.warning('事务已回滚', exc_info=True)
        raise
