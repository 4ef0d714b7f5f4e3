from datetime import datetime, timedelta
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash
from cellar.extensions import db
from .base import BaseModel

# 连续登录失败锁定
MAX_FAILED_LOGINS = 5
LOCK_MINUTES = 30


class User(UserMixin, BaseModel):
    """用户 (酒庄经营者)，所有业务数据按用户隔离"""
    __tablename__ = 'auth_users'
    email = db.Column(db.String(128), unique=True, index=True)
    name = db.Column(db.String(64))
    password_hash = db.Column(db.String(256))
    role = db.Column(db.String(16), default='USER')  # USER / ADMIN / SUPER_ADMIN

    is_active_user = db.Column(db.Boolean, default=True)  # 封号开关
    last_login = db.Column(db.DateTime)

    # 安全字段
    failed_login_attempts = db.Column(db.Integer, default=0)
    locked_until = db.Column(db.DateTime, nullable=True)

    @property
    def password(self):
        raise AttributeError('密码不可读')

    @password.setter
    def password(self, password):
        self.password_hash = generate_password_hash(password)

    def verify_password(self, password):
        return check_password_hash(self.password_hash, password)

    def is_locked(self):
        """检查账号是否被锁定"""
        return bool(self.locked_until and datetime.utcnow() < self.locked_until)

    def record_failed_login(self):
        """记录登录失败"""
        self.failed_login_attempts = (self.failed_login_attempts or 0) + 1
        if self.failed_login_attempts >= MAX_FAILED_LOGINS:
            self.locked_until = datetime.utcnow() + timedelta(minutes=LOCK_MINUTES)
        db.session.commit()

    def reset_failed_attempts(self):
        """重置失败次数"""
        self.failed_login_attempts = 0
        self.locked_until = None
        self.last_login = datetime.utcnow()
        db.session.commit()

    @property
    def is_admin(self):
        return self.role in ('ADMIN', 'SUPER_ADMIN')

    # Flask-Login 必须属性覆盖
    @property
    def is_active(self):
        return bool(self.is_active_user) and not self.is_locked()

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'name': self.name,
            'role': self.role,
            'lastLogin': self.last_login.isoformat() if self.last_login else None,
        }

    def __repr__(self):
        return f'<User {self.email}>'
