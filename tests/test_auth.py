async def test_login_returns_token_pair(client, admin):
    response = await client.post(
        "/api/v1/auth/login",
        json={"email": "admin@courierexpress.com", "password": "Admin@123"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["token_type"] == "bearer"
    assert data["access_token"]
    assert data["refresh_token"]

    me = await client.get(
        "/api/v1/auth/me",
        headers={"Authorization": f"Bearer {data['access_token']}"},
    )
    assert me.status_code == 200
    assert me.json()["email"] == "admin@courierexpress.com"
    assert me.json()["role"]["name"] == "Super Admin"


async def test_login_rejects_wrong_password(client, admin):
    response = await client.post(
        "/api/v1/auth/login",
        json={"email": "admin@courierexpress.com", "password": "wrong"},
    )
    assert response.status_code == 401


async def test_refresh_issues_new_tokens(client, admin):
    login = await client.post(
        "/api/v1/auth/login",
        json={"email": "admin@courierexpress.com", "password": "Admin@123"},
    )
    refresh = await client.post(
        "/api/v1/auth/refresh",
        json={"refresh_token": login.json()["refresh_token"]},
    )
    assert refresh.status_code == 200
    assert refresh.json()["access_token"]


async def test_access_token_is_not_a_refresh_token(client, admin):
    login = await client.post(
        "/api/v1/auth/login",
        json={"email": "admin@courierexpress.com", "password": "Admin@123"},
    )
    response = await client.post(
        "/api/v1/auth/refresh",
        json={"refresh_token": login.json()["access_token"]},
    )
    assert response.status_code == 401


async def test_protected_route_needs_a_valid_token(client):
    response = await client.get(
        "/api/v1/bookings",
        headers={"Authorization": "Bearer not-a-token"},
    )
    assert response.status_code == 401


async def test_role_without_invoicing_flag_is_forbidden(client, clerk_headers):
    response = await client.get("/api/v1/invoices", headers=clerk_headers)
    assert response.status_code == 403
    assert "invoicing:view" in response.json()["detail"]


async def test_role_flag_grants_access(client, clerk_headers):
    response = await client.get("/api/v1/bookings", headers=clerk_headers)
    assert response.status_code == 200
    assert response.json()["total"] == 0
