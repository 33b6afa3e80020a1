"""Account endpoints and the role gate."""


class TestRegisterAndLogin:
    def test_register_then_login(self, client):
        response = client.post("/api/auth/register", json={
            "username": "carol", "email": "Carol@Example.com", "password": "secret123",
        })
        assert response.status_code == 201
        assert response.get_json()["account"]["role"] == "customer"

        response = client.post("/api/auth/login", json={"username": "carol", "password": "secret123"})
        assert response.status_code == 200
        data = response.get_json()
        assert data["role"] == "customer"
        assert data["access_token"]

    def test_login_by_email(self, client):
        client.post("/api/auth/register", json={
            "username": "dave", "email": "dave@example.com", "password": "secret123",
        })
        response = client.post("/api/auth/login", json={"email": "dave@example.com", "password": "secret123"})
        assert response.status_code == 200

    def test_wrong_password(self, client, customer):
        response = client.post("/api/auth/login", json={"username": "alice", "password": "nope-nope"})
        assert response.status_code == 401

    def test_duplicate_username(self, client, customer):
        response = client.post("/api/auth/register", json={
            "username": "alice", "email": "other@example.com", "password": "secret123",
        })
        assert response.status_code == 400
        assert "Username" in response.get_json()["message"]

    def test_duplicate_email(self, client, customer):
        response = client.post("/api/auth/register", json={
            "username": "alice2", "email": "alice@example.com", "password": "secret123",
        })
        assert response.status_code == 400

    def test_missing_fields(self, client):
        response = client.post("/api/auth/register", json={"username": "x"})
        assert response.status_code == 400


class TestRoleGate:
    def test_missing_token_is_401(self, client):
        assert client.get("/api/cart").status_code == 401

    def test_garbage_token_is_401(self, client):
        response = client.get("/api/cart", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_wrong_role_is_403(self, client, staff):
        response = client.get("/api/cart", headers=staff.headers)
        assert response.status_code == 403

    def test_admin_creates_staff(self, client, admin):
        response = client.post("/api/admin/staff", json={
            "username": "newstaff", "email": "newstaff@example.com", "password": "secret123",
        }, headers=admin.headers)
        assert response.status_code == 201
        assert response.get_json()["account"]["role"] == "staff"

    def test_staff_cannot_create_staff(self, client, staff):
        response = client.post("/api/admin/staff", json={
            "username": "x1", "email": "x1@example.com", "password": "secret123",
        }, headers=staff.headers)
        assert response.status_code == 403

    def test_unknown_route_is_json_404(self, client):
        response = client.get("/api/does-not-exist")
        assert response.status_code == 404
        assert "message" in response.get_json()


class TestAccountManagement:
    def test_locked_account_cannot_log_in(self, client, admin, customer):
        response = client.patch(f"/api/admin/accounts/{customer.id}/status",
                                json={"status": "locked"}, headers=admin.headers)
        assert response.status_code == 200
        assert response.get_json()["account"]["status"] == "locked"

        response = client.post("/api/auth/login", json={"username": "alice", "password": "password123"})
        assert response.status_code == 401

        client.patch(f"/api/admin/accounts/{customer.id}/status",
                     json={"status": "active"}, headers=admin.headers)
        response = client.post("/api/auth/login", json={"username": "alice", "password": "password123"})
        assert response.status_code == 200

    def test_status_rules(self, client, admin, staff, customer):
        assert client.patch(f"/api/admin/accounts/{customer.id}/status",
                            json={"status": "banned"}, headers=admin.headers).status_code == 400
        assert client.patch(f"/api/admin/accounts/{admin.id}/status",
                            json={"status": "locked"}, headers=admin.headers).status_code == 400
        assert client.patch("/api/admin/accounts/9999/status",
                            json={"status": "locked"}, headers=admin.headers).status_code == 404
        assert client.patch(f"/api/admin/accounts/{customer.id}/status",
                            json={"status": "locked"}, headers=staff.headers).status_code == 403

    def test_listing(self, client, admin, staff, customer, other_customer):
        body = client.get("/api/admin/accounts", headers=admin.headers).get_json()
        assert body["total"] == 4

        body = client.get("/api/admin/customers", headers=admin.headers).get_json()
        assert sorted(a["username"] for a in body["accounts"]) == ["alice", "bob"]

        body = client.get("/api/admin/accounts?role=staff", headers=admin.headers).get_json()
        assert [a["username"] for a in body["accounts"]] == ["sam"]

        assert client.get("/api/admin/customers", headers=customer.headers).status_code == 403
