import os
from dotenv import load_dotenv

# 加载 .env 环境变量
load_dotenv()
basedir = os.path.abspath(os.path.dirname(__file__))

class Config:
    """基础配置类"""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'hard-to-guess-string'

    # 数据库配置
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_RECORD_QUERIES = True

    # 酒窖业务参数
    # 出酒率 (hL/ha)，用于计算地块理论最大产量
    DEFAULT_YIELD_RATIO = float(os.environ.get('DEFAULT_YIELD_RATIO', 60))
    YIELD_RATIO_MIN = 10
    YIELD_RATIO_MAX = 200
    # cuvée 与酒罐的关联方式: multi (关联表) / single (旧字段 Tank.batch_id)
    ALLOCATION_MODE = os.environ.get('ALLOCATION_MODE', 'multi')

    # 可追溯操作类型名称
    FILLING_ACTION_TYPE = 'REMPLISSAGE'
    BOTTLING_ACTION_TYPE = 'CONDITIONNEMENT'
    CONSUMPTION_ACTION_TYPE = 'CONSOMMATION'

    @staticmethod
    def init_app(app):
        # 确保 instance 目录存在 (SQLite 数据库文件)
        if not os.path.exists(os.path.join(basedir, 'instance')):
            os.makedirs(os.path.join(basedir, 'instance'))

class DevelopmentConfig(Config):
    """开发环境配置"""
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'instance', 'cellar.db')

class ProductionConfig(Config):
    """生产环境配置"""
    DEBUG = False

    DATABASE_URL = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'instance', 'cellar_prod.db')
    # PostgreSQL URL 修正（部分托管平台使用 postgres://）
    if DATABASE_URL and DATABASE_URL.startswith('postgres://'):
        DATABASE_URL = DATABASE_URL.replace('postgres://', 'postgresql://', 1)

    SQLALCHEMY_DATABASE_URI = DATABASE_URL

    # 安全设置
    SESSION_COOKIE_SECURE = False
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'

    @classmethod
    def init_app(cls, app):
        Config.init_app(app)

class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    WTF_CSRF_ENABLED = False

    @staticmethod
    def init_app(app):
        pass

config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
