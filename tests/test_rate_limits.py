import pytest


@pytest.fixture
def app_overrides():
    return {'RATELIMIT_ENABLED': True}


@pytest.fixture
def admin_headers(make_voter, login):
    # Login is itself limited, so each test logs in once
    make_voter(email='admin@example.com', role='ADMIN')
    return login('admin@example.com')


def test_create_election_is_rate_limited(client, admin_headers):
    for i in range(5):
        resp = client.post('/elections/create', json={'name': f'Election {i}'}, headers=admin_headers)
        assert resp.status_code == 201

    resp = client.post('/elections/create', json={'name': 'One too many'}, headers=admin_headers)
    assert resp.status_code == 429
    assert resp.get_json()['error'] == 'TooManyRequests'


def test_add_candidate_is_rate_limited(client, admin_headers, make_election):
    election_id, _ = make_election(candidates=())
    for i in range(5):
        resp = client.post('/elections/add-candidate', headers=admin_headers, json={
            'electionId': election_id, 'name': f'C{i}', 'party': 'Unity', 'position': 'President',
        })
        assert resp.status_code == 201

    resp = client.post('/elections/add-candidate', headers=admin_headers, json={
        'electionId': election_id, 'name': 'C6', 'party': 'Unity', 'position': 'President',
    })
    assert resp.status_code == 429


def test_delete_candidate_is_rate_limited(client, admin_headers, make_election):
    election_id, candidate_ids = make_election(candidates=tuple(
        (f'C{i}', 'Unity', 'President') for i in range(6)
    ))
    statuses = [
        client.delete(f'/elections/{election_id}/candidate/{cid}', headers=admin_headers).status_code
        for cid in candidate_ids
    ]
    assert statuses == [200] * 5 + [429]


def test_public_reads_are_not_held_by_the_sensitive_limit(client, make_election):
    election_id, _ = make_election()
    for _ in range(10):
        assert client.get(f'/elections/{election_id}').status_code == 200
