async def test_register_creates_tenant_admin(client):
    resp = await client.post("/api/auth/register", json={
        "company_name": "Northwind Plumbing",
        "email": "ops@northwindplumbing.com",
        "password": "long-enough-pw",
        "full_name": "Sam Lee",
    })

    assert resp.status_code == 201
    data = resp.json()["data"]
    assert data["user"]["role"] == "admin"
    assert data["tenant"]["name"] == "Northwind Plumbing"
    assert data["tenant"]["slug"] == "northwind-plumbing"
    assert data["user"]["tenant_id"] == data["tenant"]["id"]


async def test_register_rejects_duplicate_email(client, register):
    await register()
    resp = await client.post("/api/auth/register", json={
        "company_name": "Other Co",
        "email": "owner@acmeheating.com",
        "password": "long-enough-pw",
        "full_name": "Someone Else",
    })

    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "CONFLICT"


async def test_short_password_is_rejected(client):
    resp = await client.post("/api/auth/register", json={
        "company_name": "Tiny Co",
        "email": "a@tinyco.com",
        "password": "short",
        "full_name": "A",
    })

    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"


async def test_bad_login(client, register):
    await register()
    resp = await client.post("/api/auth/login", json={
        "email": "owner@acmeheating.com", "password": "wrong-password",
    })
    assert resp.status_code == 422


async def test_me_and_invalid_token(client, admin_headers):
    me = await client.get("/api/auth/me", headers=admin_headers)
    assert me.status_code == 200
    assert me.json()["data"]["email"] == "owner@acmeheating.com"

    bad = await client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert bad.status_code == 401
    assert bad.json()["error"]["code"] == "HTTP_ERROR"


async def test_refresh_rotates_and_logout_revokes(client, register):
    await register()
    login = await client.post("/api/auth/login", json={
        "email": "owner@acmeheating.com", "password": "correct-horse-battery",
    })
    tokens = login.json()["data"]

    refreshed = await client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert refreshed.status_code == 200
    new_tokens = refreshed.json()["data"]

    # A refresh token cannot be used as an access token
    as_access = await client.get(
        "/api/auth/me", headers={"Authorization": f"Bearer {new_tokens['refresh_token']}"}
    )
    assert as_access.status_code == 401

    headers = {"Authorization": f"Bearer {new_tokens['access_token']}"}
    out = await client.post(
        "/api/auth/logout", json={"refresh_token": new_tokens["refresh_token"]}, headers=headers
    )
    assert out.status_code == 200

    again = await client.post("/api/auth/refresh", json={"refresh_token": new_tokens["refresh_token"]})
    assert again.status_code != 200


async def test_admin_manages_users(client, admin_headers):
    created = await client.post("/api/auth/users", headers=admin_headers, json={
        "email": "tech@acmeheating.com",
        "password": "tech-password",
        "full_name": "Terry Tech",
    })
    assert created.status_code == 201
    tech = created.json()["data"]
    assert tech["role"] == "technician"

    tech_login = await client.post("/api/auth/login", json={
        "email": "tech@acmeheating.com", "password": "tech-password",
    })
    tech_headers = {"Authorization": f"Bearer {tech_login.json()['data']['access_token']}"}
    forbidden = await client.get("/api/auth/users", headers=tech_headers)
    assert forbidden.status_code == 403

    promoted = await client.put(
        f"/api/auth/users/{tech['id']}/role", headers=admin_headers, json={"role": "dispatcher"}
    )
    assert promoted.json()["data"]["role"] == "dispatcher"

    users = await client.get("/api/auth/users", headers=admin_headers)
    assert len(users.json()["data"]) == 2

    deactivated = await client.delete(f"/api/auth/users/{tech['id']}", headers=admin_headers)
    assert deactivated.status_code == 200
    assert (await client.get("/api/auth/me", headers=tech_headers)).status_code == 401


async def test_users_from_other_tenants_are_invisible(client, register):
    acme = await register()
    other = await register(company="Globex Cooling", email="owner@globexcooling.com")
    other_me = (await client.get("/api/auth/me", headers=other)).json()["data"]

    resp = await client.put(
        f"/api/auth/users/{other_me['id']}/role", headers=acme, json={"role": "technician"}
    )
    assert resp.status_code == 404


async def test_login_records_last_login_and_token_lifetime(client, register):
    await register()
    login = await client.post("/api/auth/login", json={
        "email": "owner@acmeheating.com", "password": "correct-horse-battery",
    })
    tokens = login.json()["data"]
    assert tokens["token_type"] == "bearer"
    assert tokens["expires_in"] > 0

    me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"})
    assert me.json()["data"]["last_login_at"] is not None


async def test_admin_cannot_demote_themselves(client, admin_headers):
    me = (await client.get("/api/auth/me", headers=admin_headers)).json()["data"]

    resp = await client.put(
        f"/api/auth/users/{me['id']}/role", headers=admin_headers, json={"role": "technician"}
    )
    assert resp.status_code == 422
    assert (await client.delete(f"/api/auth/users/{me['id']}", headers=admin_headers)).status_code == 422


async def test_deactivation_revokes_refresh_tokens(client, admin_headers):
    await client.post("/api/auth/users", headers=admin_headers, json={
        "email": "tech@acmeheating.com",
        "password": "tech-password",
        "full_name": "Terry Tech",
    })
    tech_tokens = (await client.post("/api/auth/login", json={
        "email": "tech@acmeheating.com", "password": "tech-password",
    })).json()["data"]
    users = (await client.get("/api/auth/users", headers=admin_headers)).json()["data"]
    tech_id = next(u["id"] for u in users if u["email"] == "tech@acmeheating.com")

    await client.delete(f"/api/auth/users/{tech_id}", headers=admin_headers)

    resp = await client.post("/api/auth/refresh", json={"refresh_token": tech_tokens["refresh_token"]})
    assert resp.status_code == 422
    relogin = await client.post("/api/auth/login", json={
        "email": "tech@acmeheating.com", "password": "tech-password",
    })
    assert relogin.status_code == 422


async def test_profile_update_changes_password(client, admin_headers):
    resp = await client.put("/api/auth/me", headers=admin_headers, json={
        "full_name": "Pat Owner", "password": "a-new-password",
    })
    assert resp.json()["data"]["full_name"] == "Pat Owner"

    login = await client.post("/api/auth/login", json={
        "email": "owner@acmeheating.com", "password": "a-new-password",
    })
    assert login.status_code == 200
