from cellar.models import ActionType, AuditLog, GrapeComposition, Stock, Tank, User

from conftest import PASSWORD


def create_tank(client, name='Cuve 01', capacity=100):
    response = client.post('/my-cellar/', data={'name': name, 'capacity': capacity})
    assert response.status_code == 201
    return response.get_json()['tank']


def create_plot(client, name='Clos du Moulin', surface=2, grape_variety='merlot'):
    response = client.post('/vineyard/', data={
        'name': name, 'surface': surface, 'grape_variety': grape_variety,
    })
    assert response.status_code == 201
    return response.get_json()['plot']


# ============ 认证 ============

def test_anonymous_requests_are_rejected(anonymous_client):
    response = anonymous_client.get('/my-cellar/')

    assert response.status_code == 401
    assert response.get_json()['success'] is False


def test_wrong_password_reports_remaining_attempts(anonymous_client, user):
    response = anonymous_client.post('/auth/login', data={'email': user.email, 'password': 'mauvais'})

    assert response.status_code == 401
    assert response.get_json()['remaining_attempts'] == 4


def test_register_logs_user_in(anonymous_client):
    response = anonymous_client.post('/auth/register', data={
        'name': 'Château Neuf',
        'email': 'Contact@Chateau-Neuf.fr',
        'password': PASSWORD,
        'confirm_password': PASSWORD,
    })

    assert response.status_code == 201
    assert User.query.filter_by(email='contact@chateau-neuf.fr').count() == 1
    assert anonymous_client.get('/auth/me').get_json()['user']['name'] == 'Château Neuf'


def test_logout(client):
    assert client.post('/auth/logout').status_code == 200
    assert client.get('/auth/me').status_code == 401


# ============ 酒罐与入罐 ============

def test_invalid_form_returns_field_errors(client):
    response = client.post('/my-cellar/', data={'name': '', 'capacity': -5})

    assert response.status_code == 400
    body = response.get_json()
    assert set(body['errors']) == {'name', 'capacity'}
    assert Tank.query.count() == 0


def test_tank_status_filter(client):
    create_tank(client, 'Cuve 01')
    client.post('/my-cellar/', data={'name': 'Cuve 02', 'capacity': 50, 'status': 'MAINTENANCE'})

    response = client.get('/my-cellar/?status=maintenance')

    assert [t['name'] for t in response.get_json()['tanks']] == ['Cuve 02']


def test_assign_plot_over_http(client):
    tank = create_tank(client)
    plot = create_plot(client)
    assert plot['grape_variety'] == 'MERLOT'
    assert plot['max_volume'] == 120

    response = client.post(f"/my-cellar/{tank['id']}/plots", data={
        'plot_id': plot['id'], 'volume': 80, 'harvest_date': '2024-09-15',
    })

    assert response.status_code == 201
    body = response.get_json()
    assert body['composition']['percentage'] == 80
    assert body['composition_created'] is True
    assert body['tank']['status'] == 'IN_USE'
    assert body['tank']['actions'][0]['type'] == 'REMPLISSAGE'
    assert body['tank']['actions'][0]['started_at'].startswith('2024-09-15')

    detail = client.get(f"/vineyard/{plot['id']}").get_json()['plot']
    assert detail['transferred_volume'] == 80
    assert detail['remaining_volume'] == 40


def test_assign_plot_over_capacity(client):
    tank = create_tank(client, capacity=50)
    plot = create_plot(client)

    response = client.post(f"/my-cellar/{tank['id']}/plots", data={'plot_id': plot['id'], 'volume': 60})

    assert response.status_code == 400
    assert response.get_json()['limit'] == 50
    assert GrapeComposition.query.count() == 0


def test_assign_plot_yield_ratio_bounds_come_from_config(app, client):
    app.config['YIELD_RATIO_MAX'] = 100
    tank = create_tank(client)
    plot = create_plot(client)

    response = client.post(f"/my-cellar/{tank['id']}/plots", data={
        'plot_id': plot['id'], 'volume': 60, 'yield_ratio': 150,
    })

    assert response.status_code == 400
    assert 'yield_ratio' in response.get_json()['errors']
    assert GrapeComposition.query.count() == 0

    response = client.post(f"/my-cellar/{tank['id']}/plots", data={
        'plot_id': plot['id'], 'volume': 60, 'yield_ratio': 90,
    })
    assert response.status_code == 201


def test_foreign_tank_is_not_found(client, db):
    other = User(name='Voisin', email='voisin@domaine-test.fr', password=PASSWORD)
    db.session.add(other)
    db.session.commit()
    tank = Tank(name='Cuve du voisin', capacity=100, user_id=other.id)
    db.session.add(tank)
    db.session.commit()

    assert client.get(f'/my-cellar/{tank.id}').status_code == 404


def test_remove_wine_creates_batch(client):
    tank = create_tank(client)
    plot = create_plot(client)
    client.post(f"/my-cellar/{tank['id']}/plots", data={'plot_id': plot['id'], 'volume': 50})

    response = client.post(f"/my-cellar/{tank['id']}/remove-wine", data={
        'volume': 50, 'created_at': '2025-03-01',
    })

    assert response.status_code == 201
    body = response.get_json()
    assert body['batch']['name'] == 'Batch 2025-03-01'
    assert body['tank']['status'] == 'MAINTENANCE'
    assert body['tank']['grape_compositions'] == []


def test_tank_capacity_cannot_drop_below_content(client):
    tank = create_tank(client)
    plot = create_plot(client)
    client.post(f"/my-cellar/{tank['id']}/plots", data={'plot_id': plot['id'], 'volume': 70})

    response = client.post(f"/my-cellar/{tank['id']}/edit", data={'name': 'Cuve 01', 'capacity': 60})

    assert response.status_code == 400
    assert response.get_json()['limit'] == 70


def test_tank_capacity_cannot_drop_below_allocated_batch(client):
    tank = create_tank(client)
    batch = client.post('/batch/', data={'name': 'Cuvée Prestige', 'quantity': 150}).get_json()['batch']
    client.post(f"/my-cellar/{tank['id']}/batches", data={'batch_id': batch['id'], 'volume': 80})

    response = client.post(f"/my-cellar/{tank['id']}/edit", data={'name': 'Cuve 01', 'capacity': 50})

    assert response.status_code == 400
    assert response.get_json()['limit'] == 80
    assert client.get(f"/my-cellar/{tank['id']}").get_json()['tank']['capacity'] == 100

    response = client.post(f"/my-cellar/{tank['id']}/edit", data={'name': 'Cuve 01', 'capacity': 80})
    assert response.status_code == 200


def test_tank_capacity_checks_single_mode_allocation(app, client):
    app.config['ALLOCATION_MODE'] = 'single'
    tank = create_tank(client)
    batch = client.post('/batch/', data={'name': 'Cuvée Prestige', 'quantity': 150}).get_json()['batch']
    client.post(f"/my-cellar/{tank['id']}/batches", data={'batch_id': batch['id'], 'volume': 60})

    response = client.post(f"/my-cellar/{tank['id']}/edit", data={'name': 'Cuve 01', 'capacity': 50})

    assert response.status_code == 400
    assert response.get_json()['limit'] == 60


# ============ cuvée 分装 ============

def test_allocate_and_suggest(client):
    small = create_tank(client, 'Petite', 40)
    create_tank(client, 'Grande', 120)
    batch = client.post('/batch/', data={'name': 'Cuvée Prestige', 'quantity': 150}).get_json()['batch']

    response = client.post(f"/my-cellar/{small['id']}/batches", data={'batch_id': batch['id'], 'volume': 40})

    assert response.status_code == 201
    allocation = response.get_json()['allocation']
    assert allocation['allocatedVolume'] == 40
    assert allocation['remainingVolume'] == 110

    suggestions = client.get(f"/batch/{batch['id']}/suggestions").get_json()
    assert suggestions['policy'] == 'worst_fit'
    assert suggestions['suggestions'] == [{'tankId': 2, 'tankName': 'Grande', 'suggestedVolume': 110}]

    overview = client.get('/batch/').get_json()['batches']
    assert overview[0]['allocated_volume'] == 40
    assert overview[0]['progress_percentage'] == 27


def test_unknown_policy_is_rejected(client):
    response = client.get('/batch/available-tanks?volume=10&policy=random')

    assert response.status_code == 400


def test_available_tanks_best_fit(client):
    create_tank(client, 'Grande', 120)
    create_tank(client, 'Moyenne', 80)
    create_tank(client, 'Petite', 40)

    tanks = client.get('/batch/available-tanks?volume=50').get_json()['tanks']

    assert [t['name'] for t in tanks] == ['Moyenne', 'Grande']


# ============ 生产动作 ============

def test_complete_action_with_shortfall(client, db):
    tank = create_tank(client)
    type_id = ActionType.query.filter_by(name='CONSOMMATION').one().id
    response = client.post('/production/actions', data={'type_id': type_id, 'tank_id': tank['id']})
    assert response.status_code == 201
    action_id = response.get_json()['action']['id']

    client.post('/stock/', data={'name': 'SO2', 'unit': 'g', 'quantity': 30})
    client.post(f'/production/actions/{action_id}/consumables', data={'name': 'SO2', 'unit': 'g', 'quantity': 50})

    check = client.get(f'/production/actions/{action_id}/stock-check').get_json()
    assert check['in_stock'] is False
    assert check['missing'][0]['missingQuantity'] == 20

    response = client.post(f'/production/actions/{action_id}/complete')

    body = response.get_json()
    assert body['stock_sufficient'] is False
    assert body['out_of_stock_items'][0]['missingQuantity'] == 20
    assert body['action']['needs_purchase'] is True
    assert Stock.query.filter_by(name='SO2').one().quantity == -20

    assert client.post(f'/production/actions/{action_id}/complete').status_code == 400


def test_scaled_preview(client):
    action = client.post('/production/actions', data={'type_id': 1, 'reference_volume': 100}).get_json()['action']
    client.post(f"/production/actions/{action['id']}/consumables", data={'name': 'SO2', 'unit': 'g', 'quantity': 10})

    body = client.get(f"/production/actions/{action['id']}?target_volume=150").get_json()

    scaled = body['action']['scaled_consumables'][0]
    assert scaled['scaledQuantity'] == 15
    assert scaled['display'] == 'SO2: 15.0 g (基准: 10.0 g)'


def test_process_assignment_scales_consumables(client):
    tank = create_tank(client, capacity=150)
    batch = client.post('/batch/', data={'name': 'Cuvée Prestige', 'quantity': 100}).get_json()['batch']
    client.post(f"/my-cellar/{tank['id']}/batches", data={'batch_id': batch['id'], 'volume': 100})
    process = client.post('/production/processes', data={'name': 'Vinification'}).get_json()['process']
    client.post(f"/batch/{batch['id']}/process", data={'process_id': process['id']})
    action = client.post('/production/actions', data={'type_id': 1, 'reference_volume': 100}).get_json()['action']
    client.post(f"/production/actions/{action['id']}/consumables", data={'name': 'SO2', 'unit': 'g', 'quantity': 10})

    response = client.post(f"/production/processes/{process['id']}/actions", data={'action_id': action['id']})

    assert response.status_code == 200
    consumable = response.get_json()['action']['consumables'][0]
    assert consumable['quantity'] == 15
    assert consumable['original_quantity'] == 10
    assert client.get(f"/production/processes/{process['id']}").get_json()['process']['target_volume'] == 150

    response = client.post(f"/production/processes/{process['id']}/actions/{action['id']}/remove")

    assert response.get_json()['action']['consumables'][0]['quantity'] == 10
    assert client.post(f"/production/actions/{action['id']}/delete").status_code == 200


def test_drafts_are_kept_in_session_until_flushed(client):
    action = client.post('/production/actions', data={'type_id': 1}).get_json()['action']
    url = f"/production/actions/{action['id']}/drafts"

    client.post(url, data={'name': 'Bentonite', 'unit': 'kg', 'quantity': 2})
    assert client.post(url, data={'name': 'SO2', 'unit': 'g', 'quantity': 4}).get_json()['count'] == 2
    assert len(client.get(url).get_json()['drafts']) == 2

    body = client.post(f'{url}/flush').get_json()

    assert body['saved'] == 2
    assert len(body['action']['consumables']) == 2
    assert client.get(url).get_json()['drafts'] == []


# ============ 库存 ============

def test_stock_is_unique_per_name_and_unit(client):
    assert client.post('/stock/', data={'name': 'SO2', 'unit': 'g', 'quantity': 100}).status_code == 201

    response = client.post('/stock/', data={'name': 'so2', 'unit': 'G', 'quantity': 1})

    assert response.status_code == 400
    assert 'name' in response.get_json()['errors']


def test_restock_and_low_stock_listing(client):
    stock = client.post('/stock/', data={
        'name': 'Bentonite', 'unit': 'kg', 'quantity': 1, 'minimum_qty': 5,
    }).get_json()['stock']
    assert stock['is_out_of_stock'] is True
    assert client.get('/stock/?low=1').get_json()['low_stock_count'] == 1

    response = client.post(f"/stock/{stock['id']}/restock", data={'quantity': 10})

    assert response.get_json()['stock']['quantity'] == 11
    assert response.get_json()['stock']['is_out_of_stock'] is False
    assert client.get('/stock/').get_json()['low_stock_count'] == 0


def test_stock_export_csv(client):
    client.post('/stock/', data={'name': 'Tanin', 'unit': 'g', 'quantity': 250})

    response = client.get('/stock/export?format=csv')

    assert response.status_code == 200
    assert response.mimetype == 'text/csv'
    assert 'Tanin' in response.data.decode('utf-8-sig')


def test_tank_export_excel(client):
    create_tank(client)

    response = client.get('/my-cellar/export')

    assert response.status_code == 200
    assert response.data[:2] == b'PK'


# ============ 总览与审计 ============

def test_dashboard(client):
    tank = create_tank(client)
    plot = create_plot(client)
    client.post(f"/my-cellar/{tank['id']}/plots", data={'plot_id': plot['id'], 'volume': 25})

    body = client.get('/').get_json()

    assert body['stats']['tanks'] == 1
    assert body['stats']['fill_rate'] == 25
    assert body['tank_status']['IN_USE'] == 1
    assert body['grape_varieties'] == [{'grape_variety': 'MERLOT', 'volume': 25}]


def test_mutations_are_audited(client):
    tank = create_tank(client)
    plot = create_plot(client)
    client.post(f"/my-cellar/{tank['id']}/plots", data={'plot_id': plot['id'], 'volume': 25})

    actions = [log.action for log in AuditLog.query.all()]
    assert 'login_success' in actions
    assert 'create_tank' in actions

    entry = AuditLog.query.filter_by(action='assign_plot').one()
    assert (entry.target_type, entry.target_id) == ('cellar_tanks', tank['id'])
    assert '"volume": 25.0' in entry.details
