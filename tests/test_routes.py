from bloodbank import db, mail
from bloodbank.models.inventory import PlasmaBag, RedBloodBag
from datetime import date, timedelta


def _future(days=30):
    return (date.today() + timedelta(days=days)).isoformat()


def test_health(client):
    response = client.get('/health')

    assert response.status_code == 200
    assert response.get_json() == {'success': True, 'database': 'ok'}


def test_surplus_alerts_route(client, hospitals, add_bag, login):
    add_bag('Platelets', hospitals['home'], 'B', '-', 400)
    add_bag('Platelets', hospitals['donor'], 'B', '-', 6000)
    login()

    body = client.get('/surplus/alerts').get_json()

    assert body['success'] is True
    assert [a['hospital_id'] for a in body['alerts']] == [hospitals['donor']]


def test_hospital_id_must_match_session(client, hospitals, login):
    login()

    response = client.get(f"/surplus/alerts?hospital_id={hospitals['donor']}")
    assert response.status_code == 403
    assert response.get_json()['success'] is False

    response = client.get(f"/surplus/summary?hospital_id={hospitals['home']}")
    assert response.status_code == 200


def test_needed_and_hospital_surplus_routes(client, hospitals, add_bag, login):
    add_bag('RedBlood', hospitals['donor'], 'O', '-', 6000)
    add_bag('RedBlood', hospitals['home'], 'O', '-', 450)
    login('bob')

    needed = client.get('/surplus/needed').get_json()
    assert [h['hospital_id'] for h in needed['hospitals']] == [hospitals['home']]

    surplus = client.get('/surplus/hospital').get_json()
    assert surplus['surplus'][0]['total_amount'] == 6000


def test_summary_route(client, hospitals, add_bag, login):
    add_bag('Plasma', hospitals['home'], 'A', '', 300)
    login()

    summary = client.get('/surplus/summary').get_json()['summary']

    assert summary['plasma']['critical'] == 1
    assert set(summary) == {'red_blood', 'plasma', 'platelets'}


def test_buckets_route(client, hospitals, add_bag, login):
    add_bag('RedBlood', hospitals['home'], 'A', '+', 450)
    login()

    body = client.get('/inventory/redblood/buckets').get_json()
    assert body['buckets'][0]['total_amount'] == 450

    response = client.get('/inventory/wholeblood/buckets')
    assert response.status_code == 400
    assert response.get_json()['error'] == 'Invalid entry type'


def test_add_entry_route(app, client, hospitals, login):
    login()

    response = client.post('/inventory/redblood', json={
        'donor_name': 'Jane Doe',
        'blood_type': 'O',
        'rh': '-',
        'amount': 450,
        'expiration_date': _future(),
    })

    assert response.status_code == 201
    bag_id = response.get_json()['bag_id']
    with app.app_context():
        bag = db.session.get(RedBloodBag, bag_id)
        assert bag.hospital_id == hospitals['home']
        assert bag.active is True

    listed = client.get('/inventory/RedBlood').get_json()['entries']
    assert [e['bag_id'] for e in listed] == [bag_id]


def test_add_plasma_without_rh(app, client, hospitals, login):
    login()

    response = client.post('/inventory/plasma', json={
        'donor_name': 'Jane Doe',
        'blood_type': 'AB',
        'amount': 300,
        'expiration_date': _future(),
    })

    assert response.status_code == 201
    with app.app_context():
        assert db.session.get(PlasmaBag, response.get_json()['bag_id']).rh == ''


def test_add_entry_validation(client, hospitals, login):
    login()
    entry = {
        'donor_name': 'Jane Doe',
        'blood_type': 'O',
        'rh': '+',
        'amount': 450,
        'expiration_date': _future(),
    }

    too_small = client.post('/inventory/redblood', json=dict(entry, amount=50))
    assert too_small.status_code == 400
    assert too_small.get_json()['error'].startswith('amount:')

    missing_rh = client.post('/inventory/platelets', json=dict(entry, rh=''))
    assert missing_rh.status_code == 400
    assert missing_rh.get_json()['error'].startswith('rh:')

    expired = client.post('/inventory/redblood', json=dict(entry, expiration_date=date.today().isoformat()))
    assert expired.status_code == 400
    assert expired.get_json()['error'].startswith('expiration_date:')

    bad_type = client.post('/inventory/redblood', json=dict(entry, blood_type='C'))
    assert bad_type.status_code == 400

    other_hospital = client.post('/inventory/redblood', json=dict(entry, hospital_id=hospitals['donor']))
    assert other_hospital.status_code == 403


def test_soft_delete_and_restore_routes(client, hospitals, add_bag, login):
    bag_id = add_bag('RedBlood', hospitals['home'], 'A', '+', 450)
    login()

    response = client.post('/donor/soft-delete', json={'bag_id': bag_id, 'entry_type': 'RedBlood'})
    assert response.get_json() == {'success': True}

    deleted = client.get('/inventory/deleted').get_json()['entries']
    assert [e['bag_id'] for e in deleted] == [bag_id]

    again = client.post('/donor/soft-delete', json={'bag_id': bag_id, 'entry_type': 'RedBlood'})
    assert again.status_code == 400
    assert again.get_json() == {'success': False, 'error': 'Entry is already deleted'}

    restored = client.post('/donor/restore', json={'bag_id': bag_id, 'entry_type': 'redblood'})
    assert restored.get_json() == {'success': True}
    assert client.get('/inventory/deleted').get_json()['entries'] == []


def test_soft_delete_of_other_hospitals_entry(app, client, hospitals, add_bag, login):
    bag_id = add_bag('RedBlood', hospitals['donor'], 'A', '+', 450)
    login()

    response = client.post('/donor/soft-delete', json={'bag_id': bag_id, 'entry_type': 'RedBlood'})

    assert response.status_code == 403
    assert response.get_json() == {'success': False,
                                   'error': "You don't have permission to modify this entry"}
    with app.app_context():
        assert db.session.get(RedBloodBag, bag_id).active is True


def test_soft_delete_errors(client, hospitals, login):
    login()

    missing = client.post('/donor/soft-delete', json={'bag_id': 12345, 'entry_type': 'RedBlood'})
    assert missing.status_code == 404
    assert missing.get_json()['error'] == 'Entry not found'

    bad_type = client.post('/donor/soft-delete', json={'bag_id': 1, 'entry_type': 'Serum'})
    assert bad_type.status_code == 400

    no_bag = client.post('/donor/soft-delete', json={'entry_type': 'RedBlood'})
    assert no_bag.status_code == 400
    assert no_bag.get_json()['error'].startswith('bag_id:')


def test_update_route(app, client, hospitals, add_bag, login):
    bag_id = add_bag('Plasma', hospitals['home'], 'A', '', 300)
    login()

    response = client.post('/donor/update', json={
        'bag_id': bag_id,
        'entry_type': 'Plasma',
        'donor_name': 'Renamed Donor',
        'blood_type': 'B',
        'amount': 250,
        'expiration_date': _future(10),
    })

    assert response.get_json() == {'success': True}
    with app.app_context():
        bag = db.session.get(PlasmaBag, bag_id)
        assert (bag.donor_name, bag.blood_type, bag.amount, bag.rh) == ('Renamed Donor', 'B', 250, '')


def test_update_route_requires_rh_for_red_blood(client, hospitals, add_bag, login):
    bag_id = add_bag('RedBlood', hospitals['home'], 'A', '+', 450)
    login()

    response = client.post('/donor/update', json={
        'bag_id': bag_id,
        'entry_type': 'RedBlood',
        'donor_name': 'Renamed Donor',
        'blood_type': 'B',
        'amount': 250,
        'expiration_date': _future(10),
    })

    assert response.status_code == 400
    assert response.get_json()['error'].startswith('rh:')


def test_hard_delete_route(app, client, hospitals, add_bag, login):
    bag_id = add_bag('Platelets', hospitals['home'], 'O', '+', 250)
    login()

    response = client.post('/donor/delete', json={'bag_id': bag_id, 'entry_type': 'platelets'})

    assert response.get_json() == {'success': True}
    assert client.get('/inventory/platelets?inactive=true').get_json()['entries'] == []


def test_search_route(client, hospitals, add_bag, login):
    add_bag('RedBlood', hospitals['donor'], 'A', '+', 450, donor_name='Maria Lopez')
    login()

    results = client.get('/inventory/search?q=lopez').get_json()['results']

    assert results[0]['hospital_name'] == 'Donor Hospital'
    assert results[0]['hospital_contact_phone'] == '555-0002'


def test_analysis_route(client, hospitals, add_bag, login):
    add_bag('RedBlood', hospitals['home'], 'A', '+', 450)
    login()

    body = client.get('/inventory/analysis?type=all&blood_type=all&rh=all').get_json()
    assert body['summary']['total_count'] == 1

    bad_status = client.get('/inventory/analysis?expiration_status=someday')
    assert bad_status.status_code == 400

    bad_date = client.get('/inventory/analysis?start_date=yesterday')
    assert bad_date.status_code == 400


def test_export_csv_route(client, hospitals, add_bag, login):
    add_bag('RedBlood', hospitals['home'], 'A', '+', 450, donor_name='Maria Lopez')
    login()

    response = client.get('/inventory/export-csv')

    assert response.status_code == 200
    assert response.mimetype == 'text/csv'
    assert 'attachment' in response.headers['Content-Disposition']
    assert 'Maria Lopez' in response.get_data(as_text=True)


def test_transfer_notifies_receiving_hospital(client, hospitals, login):
    login()

    with mail.record_messages() as outbox:
        response = client.post('/surplus/transfer', json={
            'to_hospital_id': hospitals['donor'],
            'component_type': 'platelets',
            'blood_type': 'B',
            'rh': '-',
            'amount': 500,
            'units': 2,
            'notes': 'Urgent',
        })

    assert response.status_code == 201
    assert response.get_json()['notified'] is True
    assert len(outbox) == 1
    assert outbox[0].recipients == ['donor@hospital.test']
    assert 'Home Hospital' in outbox[0].subject

    history = client.get('/surplus/history').get_json()['transfers']
    assert len(history) == 1
    assert history[0]['direction'] == 'outgoing'
    assert history[0]['to_hospital_name'] == 'Donor Hospital'
    assert history[0]['component_type'] == 'Platelets'


def test_transfer_without_contact_email(client, hospitals, login):
    login()

    response = client.post('/surplus/transfer', json={
        'to_hospital_id': hospitals['needy'],
        'component_type': 'Plasma',
        'blood_type': 'A',
        'amount': 300,
        'units': 1,
    })

    assert response.status_code == 201
    assert response.get_json()['notified'] is False


def test_transfer_errors(client, hospitals, login):
    login()
    transfer = {
        'component_type': 'RedBlood',
        'blood_type': 'O',
        'rh': '+',
        'amount': 450,
        'units': 1,
    }

    to_self = client.post('/surplus/transfer', json=dict(transfer, to_hospital_id=hospitals['home']))
    assert to_self.status_code == 400
    assert to_self.get_json() == {'success': False, 'error': 'Cannot transfer to your own hospital'}

    unknown = client.post('/surplus/transfer', json=dict(transfer, to_hospital_id=9999))
    assert unknown.status_code == 404

    no_units = client.post('/surplus/transfer', json=dict(transfer, to_hospital_id=hospitals['donor'], units=0))
    assert no_units.status_code == 400


def test_incoming_transfer_history(client, hospitals, login):
    login()
    client.post('/surplus/transfer', json={
        'to_hospital_id': hospitals['donor'],
        'component_type': 'RedBlood',
        'blood_type': 'O',
        'rh': '+',
        'amount': 450,
        'units': 1,
    })
    client.post('/auth/logout')
    login('bob')

    history = client.get('/surplus/history').get_json()['transfers']

    assert history[0]['direction'] == 'incoming'
    assert history[0]['from_hospital_name'] == 'Home Hospital'


def test_search_route_with_non_ascii_digit(client, hospitals, add_bag, login):
    add_bag('RedBlood', hospitals['home'], 'A', '+', 450)
    login()

    response = client.get('/inventory/search?q=%C2%B2')

    assert response.status_code == 200
    assert response.get_json() == {'success': True, 'results': []}
