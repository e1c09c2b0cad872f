def test_super_registers_and_lists_admins(client, super_headers, stores):
    response = client.post(
        "/api/admins",
        json={"id": "carol", "password": "carol-pw", "name": "Carol", "email": "carol@example.com"},
        headers=super_headers,
    )
    assert response.status_code == 201
    admin = response.get_json()["data"]["admin"]
    assert admin["email"] == "carol@example.com"

    admins = client.get("/api/admins", headers=super_headers).get_json()["data"]["admins"]
    by_id = {a["id"]: a for a in admins}
    assert by_id["alice"]["stores"] == ["narae"]
    assert by_id["carol"]["stores"] == []


def test_register_duplicate_admin_conflicts(client, super_headers, stores):
    response = client.post(
        "/api/admins", json={"id": "alice", "password": "whatever"}, headers=super_headers
    )
    assert response.status_code == 409
    assert response.get_json()["code"] == "ADMIN_ALREADY_EXISTS"


def test_register_admin_validates_payload(client, super_headers, stores):
    response = client.post("/api/admins", json={"id": "x", "password": "1"}, headers=super_headers)
    assert response.status_code == 400
    response = client.post(
        "/api/admins", json={"id": "dave", "password": "dave-pw", "role": "owner"}, headers=super_headers
    )
    assert response.status_code == 400


def test_mapped_admin_cannot_be_deleted(client, super_headers, stores):
    response = client.delete("/api/admins", json={"adminId": "alice"}, headers=super_headers)
    assert response.status_code == 409
    assert response.get_json()["code"] == "MAPPING_EXISTS"

    response = client.delete(
        "/api/admin-mappings", json={"adminId": "alice", "storeId": "narae"}, headers=super_headers
    )
    assert response.status_code == 200

    response = client.delete("/api/admins?adminId=alice", headers=super_headers)
    assert response.status_code == 200
    admins = client.get("/api/admins", headers=super_headers).get_json()["data"]["admins"]
    assert "alice" not in {a["id"] for a in admins}


def test_delete_admin_by_query_with_token_in_body(client, super_headers, stores):
    response = client.post(
        "/api/admins", json={"id": "carol", "password": "carol-pw"}, headers=super_headers
    )
    assert response.status_code == 201

    token = super_headers["Authorization"].removeprefix("Bearer ")
    response = client.delete("/api/admins?adminId=carol", json={"token": token})
    assert response.status_code == 200
    assert response.get_json()["data"]["adminId"] == "carol"


def test_delete_unknown_admin_is_404(client, super_headers, stores):
    assert client.delete("/api/admins", json={"adminId": "ghost"}, headers=super_headers).status_code == 404


def test_mapping_upsert_and_default(client, super_headers, stores):
    response = client.post(
        "/api/admin-mappings",
        json={"adminKey": "alice", "storeId": "haru", "isDefault": True, "note": "주말"},
        headers=super_headers,
    )
    assert response.status_code == 200
    assert response.get_json()["data"]["mapping"]["isDefault"] is True

    mappings = client.get("/api/admin-mappings?adminId=alice", headers=super_headers).get_json()["data"]["mappings"]
    defaults = {m["storeId"]: m["isDefault"] for m in mappings}
    assert defaults == {"narae": False, "haru": True}

    # Upserting again updates in place
    client.post(
        "/api/admin-mappings", json={"adminId": "alice", "storeId": "haru", "note": "평일"}, headers=super_headers
    )
    mappings = client.get("/api/admin-mappings?storeId=haru", headers=super_headers).get_json()["data"]["mappings"]
    assert sorted(m["adminId"] for m in mappings) == ["alice", "bob"]


def test_delete_missing_mapping_is_404(client, super_headers, stores):
    response = client.delete(
        "/api/admin-mappings", json={"adminId": "bob", "storeId": "narae"}, headers=super_headers
    )
    assert response.status_code == 404
    assert response.get_json()["code"] == "MAPPING_NOT_FOUND"


def test_store_crud(client, super_headers, stores):
    response = client.post(
        "/api/stores", json={"storeId": "dal", "code": "dal", "name": "달"}, headers=super_headers
    )
    assert response.status_code == 201
    assert response.get_json()["data"]["store"]["code"] == "DAL"

    assert client.post(
        "/api/stores", json={"storeId": "dal", "code": "X"}, headers=super_headers
    ).status_code == 409

    response = client.put("/api/stores", json={"storeId": "dal", "qrLimit": 25}, headers=super_headers)
    assert response.get_json()["data"]["store"]["qrLimit"] == 25

    stores_list = client.get("/api/stores", headers=super_headers).get_json()["data"]["stores"]
    assert {s["storeId"] for s in stores_list} == {"narae", "haru", "dal"}

    assert client.delete("/api/stores", json={"storeId": "dal"}, headers=super_headers).status_code == 200


def test_store_with_mappings_cannot_be_deleted(client, super_headers, stores):
    response = client.delete("/api/stores", json={"storeId": "narae"}, headers=super_headers)
    assert response.status_code == 409
    assert response.get_json()["code"] == "MAPPING_EXISTS"


def test_admin_lists_only_own_store(client, admin_headers):
    stores_list = client.get("/api/stores", headers=admin_headers()).get_json()["data"]["stores"]
    assert [s["storeId"] for s in stores_list] == ["narae"]
