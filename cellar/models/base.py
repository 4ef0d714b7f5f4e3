from datetime import datetime
from cellar.extensions import db

class BaseModel(db.Model):
    """
    酒窖模型基类
    包含：ID主键, 创建时间, 更新时间, 按用户隔离的查询, 序列化方法
    """
    __abstract__ = True

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @classmethod
    def owned_by(cls, user):
        """某个用户 (酒庄) 的记录，业务表都带 user_id"""
        return cls.query.filter_by(user_id=user.id)

    def save(self):
        """保存到数据库"""
        db.session.add(self)
        db.session.commit()

    def delete(self):
        """物理删除，关联行随 cascade 一起删除"""
        db.session.delete(self)
        db.session.commit()

    def to_dict(self):
        """
        转换为字典，便于 jsonify 返回。
        日期转 ISO 字符串，'_' 开头的列不输出。
        """
        data = {}
        for c in self.__table__.columns:
            if c.name.startswith('_'):
                continue
            val = getattr(self, c.name)
            data[c.name] = val.isoformat() if isinstance(val, datetime) else val
        return data
