import os
from cellar import create_app, db
from cellar.models import (
    User,
    Tank, Batch, TankBatch, GrapeComposition,
    Plot, PlotTank,
    ActionType, Process, Action, Consumable,
    Stock,
    AuditLog,
)

# 从环境变量获取配置模式
# 支持 FLASK_ENV 或 FLASK_CONFIG
config_name = os.getenv('FLASK_ENV') or os.getenv('FLASK_CONFIG') or 'default'
if config_name == 'dev':
    config_name = 'development'

app = create_app(config_name)

@app.shell_context_processor
def make_shell_context():
    """
    配置 Flask Shell 上下文。
    'flask shell' 中自动导入 db 和所有模型。
    """
    return dict(
        db=db,
        app=app,
        User=User,
        Tank=Tank,
        Batch=Batch,
        TankBatch=TankBatch,
        GrapeComposition=GrapeComposition,
        Plot=Plot,
        PlotTank=PlotTank,
        ActionType=ActionType,
        Process=Process,
        Action=Action,
        Consumable=Consumable,
        Stock=Stock,
        AuditLog=AuditLog,
    )

if __name__ == '__main__':
    app.run(host='0.0.0.0', port=5000)
