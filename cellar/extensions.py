from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_wtf.csrf import CSRFProtect

# 初始化扩展对象 (暂不绑定 app)
db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
csrf = CSRFProtect()

# 配置 LoginManager
login_manager.login_message = '请先登录。'
login_manager.login_message_category = 'warning'
login_manager.session_protection = 'strong'


@login_manager.unauthorized_handler
def unauthorized():
    """JSON 接口未登录时返回 401，而不是跳转登录页"""
    from cellar.exceptions import CellarException
    raise CellarException('请先登录', code=401)


@login_manager.user_loader
def load_user(user_id):
    """Flask-Login 用户加载回调"""
    from cellar.models import User
    return db.session.get(User, int(user_id))
