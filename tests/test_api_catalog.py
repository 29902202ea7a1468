"""
tests/test_api_catalog.py

Equipment types, contacts and the read-only equipment listing.
"""


class TestEquipmentTypesApi:
    def test_crud_round_trip(self, client):
        created = client.post("/api/v1/equipment-types", json={"name": "Modulator"})
        assert created.status_code == 201
        type_id = created.json()["id"]
        assert created.json()["nameLower"] == "modulator"

        assert client.get(f"/api/v1/equipment-types/{type_id}").json()["name"] == "Modulator"
        assert client.get("/api/v1/equipment-types/by-name/MODULATOR").json()["id"] == type_id

        renamed = client.put(f"/api/v1/equipment-types/{type_id}", json={"name": "Encoder"})
        assert renamed.json()["nameLower"] == "encoder"

        deleted = client.delete(f"/api/v1/equipment-types/{type_id}")
        assert deleted.json() == {"message": "Equipment type Encoder deleted"}
        assert client.get(f"/api/v1/equipment-types/{type_id}").status_code == 404

    def test_duplicate_name_any_case(self, client):
        client.post("/api/v1/equipment-types", json={"name": "Switch"})

        response = client.post("/api/v1/equipment-types", json={"name": "switch"})

        assert response.status_code == 409
        assert response.json()["fields"] == ["nameLower"]

    def test_blank_name(self, client):
        assert client.post("/api/v1/equipment-types", json={"name": "  "}).status_code == 400
        assert client.post("/api/v1/equipment-types", json={}).status_code == 400

    def test_ird_type_created_on_first_ird(self, client):
        client.post("/api/v1/irds", json={"name": "IRD-1", "adminIp": "10.0.0.1"})
        client.post("/api/v1/irds", json={"name": "IRD-2", "adminIp": "10.0.0.2"})

        types = client.get("/api/v1/equipment-types").json()

        assert [t["nameLower"] for t in types] == ["ird"]


class TestContactsApi:
    def test_blank_optional_fields_stored_as_null(self, client):
        response = client.post(
            "/api/v1/contacts", json={"name": "NOC", "email": "", "phone": "+56 2 1234"}
        )

        assert response.status_code == 201
        assert response.json()["email"] is None
        assert response.json()["phone"] == "+56 2 1234"

    def test_two_contacts_without_email(self, client):
        client.post("/api/v1/contacts", json={"name": "A"})

        response = client.post("/api/v1/contacts", json={"name": "B", "email": ""})

        assert response.status_code == 201

    def test_duplicate_email(self, client):
        client.post("/api/v1/contacts", json={"name": "A", "email": "noc@example.com"})

        response = client.post("/api/v1/contacts", json={"name": "B", "email": "noc@example.com"})

        assert response.status_code == 409
        assert response.json()["fields"] == ["email"]

    def test_name_required(self, client):
        response = client.post("/api/v1/contacts", json={"email": "x@example.com"})

        assert response.status_code == 400
        assert response.json()["detail"] == {"field": "name"}

    def test_update_and_delete(self, client):
        contact_id = client.post("/api/v1/contacts", json={"name": "A", "phone": "1"}).json()["id"]

        updated = client.put(f"/api/v1/contacts/{contact_id}", json={"phone": ""})
        assert updated.status_code == 200
        assert updated.json()["phone"] is None
        assert updated.json()["name"] == "A"

        assert client.delete(f"/api/v1/contacts/{contact_id}").json() == {"message": "Contact deleted"}
        assert client.get(f"/api/v1/contacts/{contact_id}").status_code == 404

    def test_list_sorted_by_name(self, client):
        for name in ("Zulu", "Alpha"):
            client.post("/api/v1/contacts", json={"name": name})

        assert [c["name"] for c in client.get("/api/v1/contacts").json()] == ["Alpha", "Zulu"]


class TestEquipmentApi:
    def test_populated_references(self, client):
        linked = client.post(
            "/api/v1/irds", json={"name": "IRD-1", "adminIp": "10.0.0.1", "brand": "Cisco"}
        ).json()

        listing = client.get("/api/v1/equipment").json()

        assert len(listing) == 1
        assert listing[0]["id"] == linked["equipment"]["id"]
        assert listing[0]["brand"] == "Cisco"
        assert listing[0]["model"] == "N/A"
        assert listing[0]["irdRef"]["name"] == "IRD-1"
        assert listing[0]["equipmentTypeRef"]["name"] == "ird"

    def test_missing(self, client):
        assert client.get("/api/v1/equipment/nope").status_code == 404

    def test_read_only(self, client):
        assert client.post("/api/v1/equipment", json={"name": "x"}).status_code == 405
