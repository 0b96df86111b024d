def test_index(client):
    res = client.get('/')
    assert res.status_code == 200
    assert 'message' in res.get_json()


def test_health(client):
    res = client.get('/health')
    assert res.status_code == 200
    assert res.get_json() == {'ok': True}


def test_stats_reflect_socket_activity(client, sio_client):
    sio_client.emit('create_room', {'playerName': 'Alice'})
    res = client.get('/api/stats')
    assert res.status_code == 200
    data = res.get_json()
    assert data['connections'] == 1
    assert data['rooms'] == 1
    assert data['started_rooms'] == 0
    assert data['waiting_players'] == 0


def test_room_state(client, sio_client):
    sio_client.emit('create_room', {'playerName': 'Alice'})
    code = [p['args'][0] for p in sio_client.get_received() if p['name'] == 'room_created'][0]['roomId']
    res = client.get(f'/api/rooms/{code.lower()}')
    assert res.status_code == 200
    data = res.get_json()
    assert data['roomId'] == code
    assert data['phase'] == 'lobby'
    assert data['gameStarted'] is False
    assert data['matchState'] is None
    assert [p['name'] for p in data['players']] == ['Alice']
    assert data['players'][0]['isHost'] is True


def test_room_state_not_found(client):
    res = client.get('/api/rooms/ZZZZZZ')
    assert res.status_code == 404
    assert res.get_json() == {'error': 'Room not found'}
