from conftest import auth_headers


def test_register_login_me(client, tiers):
    response = client.post("/auth/register", json={"email": "new@example.com", "password": "secret123"})
    assert response.status_code == 200
    body = response.json()
    assert body["name"] == "new"
    assert body["tier_name"] == "Free"
    assert body["permission_level"] == 1
    assert body["is_admin"] is False

    response = client.post("/auth/login", json={"email": "new@example.com", "password": "secret123"})
    assert response.status_code == 200
    token = response.json()["access_token"]

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json()["email"] == "new@example.com"


def test_register_rejects_duplicates_and_short_passwords(client, tiers):
    client.post("/auth/register", json={"email": "dup@example.com", "password": "secret123"})
    assert client.post("/auth/register", json={"email": "dup@example.com", "password": "secret123"}).status_code == 400
    assert client.post("/auth/register", json={"email": "short@example.com", "password": "123"}).status_code == 400
    assert client.post("/auth/register", json={"email": "not-an-email", "password": "secret123"}).status_code == 422


def test_register_without_tiers_is_unavailable(client):
    response = client.post("/auth/register", json={"email": "early@example.com", "password": "secret123"})
    assert response.status_code == 503


def test_wrong_password(client, tiers):
    client.post("/auth/register", json={"email": "user@example.com", "password": "secret123"})
    response = client.post("/auth/login", json={"email": "user@example.com", "password": "wrong"})
    assert response.status_code == 401


def test_token_for_deleted_user(client, db, make_user):
    user = make_user("gone@example.com")
    headers = auth_headers(user)
    db.delete(user)
    db.commit()
    assert client.get("/auth/me", headers=headers).status_code == 401


def test_update_own_name(client, db, make_user):
    user = make_user("planner@example.com")
    headers = auth_headers(user)

    response = client.patch("/auth/me", json={"name": "  Ana Souza "}, headers=headers)
    assert response.status_code == 200
    assert response.json()["name"] == "Ana Souza"

    assert client.patch("/auth/me", json={"name": "   "}, headers=headers).status_code == 400
    assert client.patch("/auth/me", json={"name": "x" * 101}, headers=headers).status_code == 422
    assert client.patch("/auth/me", json={"name": "Ana"}).status_code == 401
    db.refresh(user)
    assert user.name == "Ana Souza"
