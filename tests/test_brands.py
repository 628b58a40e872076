from bson import ObjectId

from conftest import brand_payload, product_payload


def test_brand_mutations_require_token(client):
    response = client.post("/api/brands", json=brand_payload())
    assert response.status_code == 401


def test_create_brand_trims_name(client, user_headers):
    response = client.post("/api/brands", json=brand_payload(name="  Acme  "), headers=user_headers)
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["name"] == "Acme"
    assert data["id"]
    assert data["createdAt"] and data["updatedAt"]


def test_duplicate_brand_name_is_rejected(client, brand, user_headers):
    response = client.post("/api/brands", json=brand_payload(logo="other.png"), headers=user_headers)
    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Brand with name Acme already exists"}
    assert client.get("/api/brands").json()["count"] == 1


def test_brands_are_listed_by_name(client, user_headers):
    for name in ("Maisto", "Bburago", "Kyosho"):
        client.post("/api/brands", json=brand_payload(name=name), headers=user_headers)
    response = client.get("/api/brands")
    assert response.status_code == 200
    assert [b["name"] for b in response.json()["data"]] == ["Bburago", "Kyosho", "Maisto"]


def test_get_brand(client, brand):
    assert client.get(f"/api/brands/{brand['id']}").json()["data"]["name"] == "Acme"
    assert client.get(f"/api/brands/{ObjectId()}").status_code == 404


def test_update_brand(client, brand, user_headers):
    response = client.put(f"/api/brands/{brand['id']}", json={"logo": "new.png"}, headers=user_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["logo"] == "new.png"
    assert data["name"] == "Acme"


def test_rename_brand_to_existing_name_is_rejected(client, brand, user_headers):
    other = client.post("/api/brands", json=brand_payload(name="Maisto"), headers=user_headers).json()["data"]
    response = client.put(f"/api/brands/{other['id']}", json={"name": "Acme"}, headers=user_headers)
    assert response.status_code == 400


def test_delete_brand_leaves_catalog_references(client, brand, user_headers):
    client.post("/api/products", json=product_payload(), headers=user_headers)

    response = client.delete(f"/api/brands/{brand['id']}", headers=user_headers)
    assert response.status_code == 200
    assert client.get(f"/api/brands/{brand['id']}").status_code == 404
    assert client.get("/api/products").json()["data"][0]["brand"] == "Acme"
