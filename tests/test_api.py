import time

from adminlogin_common.request_context import REQ_ID_HEADER
from adminlogin_web import auth as auth_mod


def _add(client, username="alice", password="pw1", admin_type="camp"):
    return client.post("/api/add-user", json={
        "username": username, "password": password, "adminType": admin_type,
    })


def _login(client, username="alice", password="pw1", admin_type="camp"):
    return client.post("/api/login", json={
        "username": username, "password": password, "adminType": admin_type,
    })


def test_login_page_served(client):
    response = client.get("/")
    assert response.status_code == 200
    assert b"loginForm" in response.data


def test_healthz(client):
    assert client.get("/healthz").get_json() == {"ok": True}


def test_add_user_created(client):
    response = _add(client, admin_type=["camp", "enroll"])
    assert response.status_code == 201
    assert response.get_json() == {"message": "User(s) added", "adminType": ["camp", "enroll"]}


def test_add_user_missing_fields(client):
    response = client.post("/api/add-user", json={"username": "alice", "password": "pw"})
    assert response.status_code == 400
    assert response.get_json()["message"] == "Missing fields"


def test_add_user_invalid_type(client):
    assert _add(client, admin_type="root").status_code == 400


def test_add_user_conflict(client):
    _add(client)
    response = _add(client)
    assert response.status_code == 409
    assert response.get_json()["message"] == "User exists for camp"


def test_add_user_form_post(client):
    response = client.post("/api/add-user", data={
        "username": "alice", "password": "pw1", "adminType": ["camp", "enroll"],
    })
    assert response.status_code == 201
    assert response.get_json()["adminType"] == ["camp", "enroll"]


def test_login_success(client):
    _add(client)
    response = _login(client)
    assert response.status_code == 200
    data = response.get_json()
    assert data["message"] == "Login successful"
    assert data["adminType"] == "camp"
    assert data["adminTypeLabel"] == "Camp registration"
    assert client.get("/api/session").get_json() == {
        "loggedIn": True, "username": "alice", "adminType": "camp",
    }


def test_login_failures(client):
    _add(client)
    assert _login(client, password="bad").status_code == 401
    assert _login(client, admin_type="enroll").status_code == 401
    assert _login(client, username="bob").get_json()["message"] == "Invalid credentials"
    assert client.post("/api/login", json={"username": "alice"}).status_code == 400


def test_login_rejects_non_object_body(client):
    response = client.post("/api/login", json=["alice", "pw1", "camp"])
    assert response.status_code == 400


def test_logout_clears_session(client):
    _add(client)
    _login(client)
    response = client.post("/api/logout")
    assert response.status_code == 200
    assert client.get("/api/session").get_json() == {"loggedIn": False}


def test_session_expires_after_fixed_lifetime(client):
    _add(client)
    _login(client)
    with client.session_transaction() as sess:
        sess[auth_mod.SESSION_LOGIN_AT] = time.time() - 3600
    assert client.get("/api/session").get_json() == {"loggedIn": False}


def test_list_users_grouped(client):
    _add(client, admin_type="camp")
    _add(client, admin_type="enroll")
    _add(client, username="bob", admin_type="enroll")
    response = client.get("/api/users")
    assert response.status_code == 200
    assert response.get_json() == [
        {"username": "alice", "adminType": ["camp", "enroll"]},
        {"username": "bob", "adminType": ["enroll"]},
    ]


def test_delete_single_type(client):
    _add(client, admin_type=["camp", "enroll"])
    response = client.delete("/api/users/alice/camp")
    assert response.status_code == 200
    assert client.get("/api/users").get_json() == [{"username": "alice", "adminType": ["enroll"]}]
    assert client.delete("/api/users/alice/camp").status_code == 404


def test_delete_all_types(client):
    _add(client, admin_type=["camp", "enroll"])
    response = client.delete("/api/users/alice")
    assert response.status_code == 200
    assert response.get_json()["removed"] == 2
    assert client.get("/api/users").get_json() == []
    assert client.delete("/api/users/alice").status_code == 404


def test_update_single_record(client):
    _add(client)
    response = client.put("/api/users/alice/camp", json={"newPassword": "pw2", "newAdminType": "enroll"})
    assert response.status_code == 200
    assert response.get_json()["adminType"] == "enroll"
    assert _login(client, password="pw2", admin_type="enroll").status_code == 200
    assert _login(client, password="pw1", admin_type="camp").status_code == 401


def test_update_single_record_errors(client):
    _add(client, admin_type=["camp", "enroll"])
    assert client.put("/api/users/ghost/camp", json={"newPassword": "x"}).status_code == 404
    assert client.put("/api/users/alice/camp", json={"newAdminType": "enroll"}).status_code == 409
    assert client.put("/api/users/alice/camp", json={}).status_code == 400


def test_replace_user(client):
    _add(client, admin_type="camp")
    response = client.put("/api/update-user", json={
        "oldUsername": "alice", "newUsername": "alicia", "adminType": ["camp", "enroll"], "newPassword": "pw2",
    })
    assert response.status_code == 200
    assert response.get_json() == {
        "message": "User updated", "username": "alicia", "adminType": ["camp", "enroll"],
    }
    assert _login(client, username="alicia", password="pw2", admin_type="enroll").status_code == 200


def test_replace_user_new_type_needs_password(client):
    _add(client, admin_type="camp")
    response = client.put("/api/update-user", json={
        "oldUsername": "alice", "adminType": ["camp", "enroll"],
    })
    assert response.status_code == 400
    assert client.get("/api/users").get_json() == [{"username": "alice", "adminType": ["camp"]}]


def test_replace_user_missing(client):
    response = client.put("/api/update-user", json={"oldUsername": "ghost", "adminType": "camp", "newPassword": "x"})
    assert response.status_code == 404
    assert client.put("/api/update-user", json={"adminType": "camp"}).status_code == 400


def test_store_failure_is_generic_500(client, store):
    store.close()
    response = client.get("/api/users")
    assert response.status_code == 500
    assert response.get_json() == {"message": "Server error"}


def test_unknown_route_json_404(client):
    response = client.post("/api/nope")
    assert response.status_code in (404, 405)
    assert response.get_json()["ok"] is False


def test_response_headers(client):
    response = client.get("/api/users")
    assert response.headers["Cache-Control"] == "no-store"
    assert response.headers[REQ_ID_HEADER]

    echoed = client.get("/api/users", headers={REQ_ID_HEADER: "abc123"})
    assert echoed.headers[REQ_ID_HEADER] == "abc123"


class TestRequireAdminSession:
    def test_management_requires_login(self, guarded_client):
        assert guarded_client.get("/api/users").status_code == 401
        assert _add(guarded_client).status_code == 401
        assert guarded_client.delete("/api/users/alice").status_code == 401

    def test_logged_in_admin_allowed(self, guarded_client, store):
        from adminlogin_web.credentials import CredentialService

        CredentialService(store).add_user("root", "pw", "camp")
        assert _login(guarded_client, username="root", password="pw").status_code == 200
        assert _add(guarded_client, username="bob", admin_type="enroll").status_code == 201
        assert guarded_client.get("/api/users").status_code == 200
