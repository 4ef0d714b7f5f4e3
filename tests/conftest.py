import pytest

from cellar import create_app
from cellar.extensions import db as _db
from cellar.models import ActionType, User

PASSWORD = 'vendanges-2024'


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        _db.create_all()
        for name in ('REMPLISSAGE', 'CONDITIONNEMENT', 'CONSOMMATION'):
            _db.session.add(ActionType(name=name))
        _db.session.commit()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def user(db):
    user = User(name='Domaine des Tests', email='vigneron@domaine-test.fr', password=PASSWORD)
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def client(app, user):
    client = app.test_client()
    response = client.post('/auth/login', data={'email': user.email, 'password': PASSWORD})
    assert response.status_code == 200
    return client


@pytest.fixture
def anonymous_client(app):
    return app.test_client()
