import click
import random
from datetime import datetime, timedelta
from flask import current_app
from flask.cli import with_appcontext
from cellar.extensions import db
from cellar.models.auth import User
from cellar.models.cellar import Tank, Batch
from cellar.models.vineyard import Plot
from cellar.models.production import ActionType, Action, Consumable, Process
from cellar.models.stock import Stock
from cellar.utils.fake_gen import fake, WineryProvider

# 默认动作类型
DEFAULT_ACTION_TYPES = [
    ('REMPLISSAGE', '地块收成入罐'),
    ('CONDITIONNEMENT', '出罐装瓶'),
    ('CONSOMMATION', '辅料消耗'),
    ('SULFITAGE', '加硫'),
    ('COLLAGE', '下胶澄清'),
    ('FILTRATION', '过滤'),
    ('SOUTIRAGE', '换桶'),
    ('ANALYSE', '实验室分析'),
]

DEMO_EMAIL = 'demo@domaine-demo.fr'
DEMO_PASSWORD = 'vendanges'


@click.command('status')
@with_appcontext
def status():
    """[验证指令] 查看当前数据库中的数据统计"""
    click.echo(click.style('📊 酒窖数据库状态:', fg='cyan', bold=True))

    try:
        counts = [
            ('用户 (Users)', User.query.count()),
            ('酒罐 (Tanks)', Tank.query.count()),
            ('地块 (Plots)', Plot.query.count()),
            ('cuvée (Batches)', Batch.query.count()),
            ('动作 (Actions)', Action.query.count()),
            ('库存 (Stocks)', Stock.query.count()),
        ]
        for label, count in counts:
            click.echo(f" - {label}: \t{count}")

        if counts[0][1] > 0:
            click.echo(click.style('✔ 数据库连接正常，数据已存在。', fg='green'))
        else:
            click.echo(click.style('⚠ 数据库为空，请运行 flask seed 生成数据。', fg='yellow'))

    except Exception as e:
        click.echo(click.style(f'✘ 数据库读取失败: {str(e)}', fg='red'))
        click.echo("请检查是否执行了 'flask db upgrade'")


@click.command('seed')
@click.option('--tanks', default=8, help='酒罐数量 (默认8)')
@click.option('--plots', default=6, help='地块数量 (默认6)')
@with_appcontext
def seed(tanks, plots):
    """
    初始化演示数据：动作类型、演示用户、酒罐、地块、辅料库存与动作模板。
    警告：这将清除数据库中的现有数据！
    """
    click.echo(click.style('🍇 初始化酒窖演示数据...', fg='cyan', bold=True))

    db.drop_all()
    db.create_all()

    init_action_types()
    user = init_user()

    click.echo('正在建造酒罐...')
    init_tanks(user, tanks)

    click.echo('正在登记葡萄园地块...')
    init_plots(user, plots)

    click.echo('正在盘点辅料库存...')
    init_stocks(user)

    click.echo('正在创建动作模板与工艺流程...')
    init_production(user)

    click.echo(click.style('✔ 演示数据构建完成！', fg='green', bold=True))
    click.echo(f"演示账号: {DEMO_EMAIL} / 密码: {DEMO_PASSWORD}")


def init_action_types():
    for name, description in DEFAULT_ACTION_TYPES:
        db.session.add(ActionType(name=name, description=description))
    db.session.commit()


def init_user():
    user = User(name=fake.company(), email=DEMO_EMAIL, password=DEMO_PASSWORD)
    db.session.add(user)
    db.session.commit()
    return user


def init_tanks(user, count):
    for i in range(1, count + 1):
        db.session.add(Tank(
            name=fake.tank_name(i),
            material=fake.tank_material(),
            capacity=random.choice([50, 80, 100, 120, 150, 200]),
            user_id=user.id,
        ))
    db.session.commit()
    click.echo(f'  ✓ 已创建 {count} 个酒罐')


def init_plots(user, count):
    for _ in range(count):
        db.session.add(Plot(
            name=fake.plot_name(),
            surface=round(random.uniform(0.5, 4.0), 2),
            grape_variety=fake.grape_variety(),
            user_id=user.id,
        ))
    db.session.commit()
    click.echo(f'  ✓ 已创建 {count} 个地块 (出酒率 {current_app.config["DEFAULT_YIELD_RATIO"]} hL/ha)')


def init_stocks(user):
    for name, unit, _ in WineryProvider.consumables:
        minimum = random.choice([0, 5, 10, 50])
        quantity = random.choice([0, 2, 20, 100, 500])
        db.session.add(Stock(
            name=name,
            unit=unit,
            quantity=quantity,
            minimum_qty=minimum,
            is_out_of_stock=quantity <= minimum,
            user_id=user.id,
        ))
    db.session.commit()


def init_production(user):
    """几个带参考体积的动作模板，以及一个空的工艺流程"""
    types = {t.name: t for t in ActionType.query.all()}
    start = datetime.utcnow()

    for offset, type_name in enumerate(['SULFITAGE', 'COLLAGE', 'FILTRATION']):
        action = Action(
            type=types[type_name],
            user_id=user.id,
            duration=1,
            reference_volume=100,
            started_at=start + timedelta(days=offset * 7),
            description=f"{type_name.title()} (100 hL)",
        )
        for _ in range(2):
            name, unit, commodity = fake.winery_consumable()
            if any(c.name == name for c in action.consumables):
                continue
            action.consumables.append(Consumable(
                name=name, unit=unit, commodity=commodity,
                quantity=round(random.uniform(1, 20), 2),
            ))
        db.session.add(action)

    db.session.add(Process(name=f"Vinification {start.year}", start_date=start, user_id=user.id))
    db.session.commit()
