"""
REST surface: authentication, roles, error mapping and the main flows.
"""

import pytest

import main


ASSIGNEE = {
    "assigneeName": "Jane Doe",
    "position": "Engineer",
    "employeeEmail": "jane.doe@example.com",
    "phoneNumber": "5551234567",
    "department": "IT",
}


def login(client, email, password):
    response = client.post("/api/users/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}


def add_user(client, admin_headers, role, email=None):
    email = email or f"{role.lower()}@example.com"
    response = client.post(
        "/api/users",
        json={"name": f"{role} User", "email": email, "password": "secret1", "role": role},
        headers=admin_headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def editor_headers(client, admin_headers):
    add_user(client, admin_headers, "Editor")
    return login(client, "editor@example.com", "secret1")


@pytest.fixture
def viewer_headers(client, admin_headers):
    add_user(client, admin_headers, "Viewer")
    return login(client, "viewer@example.com", "secret1")


def create(client, headers, **body):
    payload = {"category": "Laptop", "model": "ThinkPad T14", "purchasePrice": 1200}
    payload.update(body)
    response = client.post("/api/equipment", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def transition(client, headers, asset, status, **body):
    return client.post(
        f"/api/equipment/{asset['id']}/transition",
        json={"status": status, **body},
        headers=headers,
    )


class TestAuth:

    def test_health(self, client):
        assert client.get("/").json()["status"] == "operational"

    def test_missing_token(self, client):
        response = client.get("/api/equipment")
        assert response.status_code == 401
        assert response.json()["detail"] == "No token, authorization denied"

    def test_bad_token(self, client):
        response = client.get("/api/equipment", headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Token is not valid"

    def test_bad_credentials(self, client):
        response = client.post("/api/users/login", json={"email": "admin@example.com", "password": "wrong"})
        assert response.status_code == 400

    def test_login_returns_user(self, client):
        response = client.post(
            "/api/users/login", json={"email": "ADMIN@example.com", "password": "password123"}
        )
        assert response.status_code == 200
        assert response.json()["user"]["role"] == "Admin"

    def test_viewer_can_read_not_write(self, client, viewer_headers):
        assert client.get("/api/equipment", headers=viewer_headers).status_code == 200
        response = client.post("/api/equipment", json={"category": "Laptop"}, headers=viewer_headers)
        assert response.status_code == 403
        assert response.json()["detail"] == "Access denied. Insufficient role."

    def test_editor_cannot_delete(self, client, editor_headers):
        asset = create(client, editor_headers)
        response = client.delete(f"/api/equipment/{asset['id']}", headers=editor_headers)
        assert response.status_code == 403


class TestEquipment:

    def test_create_uses_camel_case(self, client, admin_headers):
        asset = create(client, admin_headers, serialNumber="SN100")
        assert asset["assetId"] == "LAP-001"
        assert asset["serialNumber"] == "SN100"
        assert asset["status"] == "In Stock"
        assert asset["version"] == 1

    def test_duplicate_serial_is_conflict(self, client, admin_headers):
        create(client, admin_headers, serialNumber="SN100")
        response = client.post(
            "/api/equipment",
            json={"category": "Laptop", "serialNumber": "SN100"},
            headers=admin_headers,
        )
        assert response.status_code == 409
        assert response.json()["field"] == "serialNumber"

    def test_unknown_field_rejected(self, client, admin_headers):
        response = client.post(
            "/api/equipment",
            json={"category": "Laptop", "isDeleted": True},
            headers=admin_headers,
        )
        assert response.status_code == 422

    def test_transition_validation_error(self, client, admin_headers):
        asset = create(client, admin_headers)
        response = transition(client, admin_headers, asset, "In Use", assigneeName="Jane Doe")
        assert response.status_code == 400
        assert response.json()["field"] == "employeeEmail"

    def test_lifecycle_flow(self, client, admin_headers):
        asset = create(client, admin_headers)

        response = transition(client, admin_headers, asset, "In Use", **ASSIGNEE)
        assert response.status_code == 200
        assert response.json()["employeeEmail"] == "jane.doe@example.com"

        response = transition(client, admin_headers, asset, "E-Waste")
        body = response.json()
        assert body["status"] == "E-Waste"
        assert body["assigneeName"] is None
        assert body["version"] == 3

        response = transition(client, admin_headers, asset, "In Stock")
        assert response.status_code == 400
        assert response.json()["field"] == "status"

    def test_edit_with_stale_version(self, client, admin_headers):
        asset = create(client, admin_headers)
        url = f"/api/equipment/{asset['id']}"
        assert client.put(url, json={"location": "A", "expectedVersion": 1},
                          headers=admin_headers).status_code == 200

        response = client.put(url, json={"location": "B", "expectedVersion": 1}, headers=admin_headers)

        assert response.status_code == 409
        assert response.json()["field"] == "version"

    def test_full_form_edit_with_taken_serial(self, client, admin_headers):
        create(client, admin_headers, serialNumber="SN200")
        asset = create(client, admin_headers, serialNumber="SN201")
        body = {
            "assetId": asset["assetId"], "serialNumber": "SN200", "category": "Laptop",
            "model": "ThinkPad T14", "location": "", "purchasePrice": 1200.0,
            "purchaseDate": None, "warrantyExpiryDate": None, "comment": "",
            "expectedVersion": asset["version"],
        }

        response = client.put(f"/api/equipment/{asset['id']}", json=body, headers=admin_headers)
        assert response.status_code == 409
        assert response.json()["field"] == "serialNumber"

        body["serialNumber"] = "SN202"
        response = client.put(f"/api/equipment/{asset['id']}", json=body, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["serialNumber"] == "SN202"
        assert response.json()["version"] == asset["version"] + 1

    def test_edit_rejects_status(self, client, admin_headers):
        asset = create(client, admin_headers)
        response = client.put(f"/api/equipment/{asset['id']}", json={"status": "Damaged"},
                              headers=admin_headers)
        assert response.status_code == 422

    def test_missing_asset(self, client, admin_headers):
        response = client.get("/api/equipment/00000000-0000-0000-0000-000000000000", headers=admin_headers)
        assert response.status_code == 404

    def test_soft_delete_then_purge(self, client, admin_headers):
        asset = create(client, admin_headers)
        url = f"/api/equipment/{asset['id']}"

        assert client.delete(f"{url}/purge", headers=admin_headers).status_code == 400

        response = client.delete(url, headers=admin_headers)
        assert response.json()["isDeleted"] is True
        assert client.get("/api/equipment", headers=admin_headers).json() == []
        removed = client.get("/api/equipment/removed", headers=admin_headers).json()
        assert [a["id"] for a in removed] == [asset["id"]]

        assert client.delete(f"{url}/purge", headers=admin_headers).status_code == 200
        assert client.get(url, headers=admin_headers).status_code == 404


class TestReports:

    def test_summary_and_value(self, client, admin_headers):
        create(client, admin_headers, purchasePrice=100)
        damaged = create(client, admin_headers, purchasePrice=50)
        transition(client, admin_headers, damaged, "Damaged", damageDescription="Dropped")

        summary = client.get("/api/equipment/summary", headers=admin_headers).json()
        assert summary["totalAssets"] == 2
        assert summary["inStock"] == 1
        assert summary["damaged"] == 1
        assert summary["removed"] == 0

        value = client.get("/api/equipment/total-value", headers=admin_headers).json()
        assert value["totalValue"] == 150

    def test_groupings(self, client, admin_headers):
        asset = create(client, admin_headers)
        transition(client, admin_headers, asset, "In Use", **ASSIGNEE)
        create(client, admin_headers, model="Dell U2720", category="Monitor")

        groups = client.get("/api/equipment/grouped-by-email", headers=admin_headers).json()
        assert [(g["employeeEmail"], g["count"]) for g in groups] == [("jane.doe@example.com", 1)]

        models = client.get("/api/equipment/grouped-by-model", params={"status": "In Stock"},
                            headers=admin_headers).json()
        assert [(m["model"], m["count"]) for m in models] == [("Dell U2720", 1)]

    def test_next_asset_id_and_count(self, client, admin_headers):
        create(client, admin_headers, category="Monitor")
        count = client.get("/api/equipment/count/Monitor", headers=admin_headers).json()
        assert count["count"] == 1
        next_id = client.get("/api/equipment/next-asset-id/Monitor", headers=admin_headers).json()
        assert next_id["assetId"] == "MON-002"

    def test_search(self, client, admin_headers):
        create(client, admin_headers, model="MacBook Air")
        create(client, admin_headers)
        found = client.get("/api/equipment/search", params={"q": "macbook"}, headers=admin_headers).json()
        assert [a["model"] for a in found] == ["MacBook Air"]


class TestUsers:

    def test_duplicate_email(self, client, admin_headers):
        add_user(client, admin_headers, "Viewer")
        response = client.post(
            "/api/users",
            json={"name": "Again", "email": "viewer@example.com", "password": "x"},
            headers=admin_headers,
        )
        assert response.status_code == 409

    def test_update_role(self, client, admin_headers):
        user = add_user(client, admin_headers, "Viewer")
        response = client.put(f"/api/users/{user['id']}", json={"role": "Editor"}, headers=admin_headers)
        assert response.json()["role"] == "Editor"

    def test_cannot_delete_self(self, client, admin_headers):
        users = client.get("/api/users", headers=admin_headers).json()
        admin = next(u for u in users if u["email"] == "admin@example.com")
        response = client.delete(f"/api/users/{admin['id']}", headers=admin_headers)
        assert response.status_code == 400

    def test_delete_user(self, client, admin_headers):
        user = add_user(client, admin_headers, "Viewer")
        assert client.delete(f"/api/users/{user['id']}", headers=admin_headers).status_code == 200
        emails = [u["email"] for u in client.get("/api/users", headers=admin_headers).json()]
        assert "viewer@example.com" not in emails


class TestPasswordReset:

    @pytest.fixture
    def sent(self, client):
        links = []
        main.app.dependency_overrides[main.get_reset_link_sender] = lambda: (
            lambda email, link: links.append((email, link))
        )
        yield links
        main.app.dependency_overrides.pop(main.get_reset_link_sender, None)

    def test_unknown_email(self, client, sent):
        response = client.post("/api/forgot-password", json={"email": "nobody@example.com"})
        assert response.status_code == 404
        assert sent == []

    def test_reset_flow(self, client, admin_headers, sent):
        add_user(client, admin_headers, "Viewer")
        assert client.post("/api/forgot-password", json={"email": "viewer@example.com"}).status_code == 200

        (email, link), = sent
        assert email == "viewer@example.com"
        token = link.split("token=")[1].split("&")[0]

        response = client.post(
            "/api/reset-password",
            json={"email": "viewer@example.com", "token": token, "newPassword": "brand-new"},
        )
        assert response.status_code == 200
        login(client, "viewer@example.com", "brand-new")

        again = client.post(
            "/api/reset-password",
            json={"email": "viewer@example.com", "token": token, "newPassword": "other"},
        )
        assert again.status_code == 400
