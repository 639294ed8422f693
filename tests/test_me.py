from tests.helpers import headers


def test_me_returns_role(client, people):
    r = client.get("/me", headers=headers(people.supervisor))
    assert r.status_code == 200
    body = r.json()
    assert body["email"] == "supervisor@local.test"
    assert body["role"] == "SUPERVISOR"
    assert body["unread_notifications"] == 0


def test_me_requires_header(client):
    assert client.get("/me").status_code == 401
