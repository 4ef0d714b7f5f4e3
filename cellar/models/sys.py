from cellar.extensions import db
from .base import BaseModel

class AuditLog(BaseModel):
    """操作审计：谁在何时对哪条酒窖记录做了什么"""
    __tablename__ = 'sys_audit_logs'

    user_id = db.Column(db.Integer, db.ForeignKey('auth_users.id'))
    module = db.Column(db.String(32), index=True) # 'cellar', 'stock' ...
    action = db.Column(db.String(64)) # 'assign_plot', 'restock' ...
    target_type = db.Column(db.String(64)) # 被操作记录的表名
    target_id = db.Column(db.Integer)
    ip_address = db.Column(db.String(64))
    details = db.Column(db.Text) # JSON 详情

    user = db.relationship('User')
