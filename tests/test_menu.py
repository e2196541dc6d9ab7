"""Menu items and categories."""


def _category(client, name):
    categories = client.get("/api/menu/categories").json()["data"]
    return next(c for c in categories if c["name"] == name)


def test_default_categories_are_seeded(client):
    response = client.get("/api/menu/categories")

    assert response.status_code == 200
    names = {c["name"] for c in response.json()["data"]}
    assert names == {"makanan", "minuman", "dessert", "starter/snack", "paket"}
    assert _category(client, "minuman")["subcategories"] == ["bersoda", "biasa", "kafein"]


def test_menu_is_public(client, menu):
    response = client.get("/api/menu")

    assert response.status_code == 200
    names = [item["name"] for item in response.json()["data"]["items"]]
    assert set(names) == {"Nasi Goreng", "Mie Ayam", "Es Kopi"}


def test_menu_filters(client, menu):
    def names(**params):
        data = client.get("/api/menu", params=params).json()["data"]["items"]
        return {item["name"] for item in data}

    assert names(category="minuman") == {"Es Kopi"}
    assert names(category="minuman", subcategory="kafein") == {"Es Kopi"}
    assert names(minPrice="19000", maxPrice="22000") == {"Mie Ayam"}
    assert names(q="JAMUR") == {"Mie Ayam"}
    assert names(q="goreng") == {"Nasi Goreng"}
    # Non-numeric bounds are ignored
    assert len(names(minPrice="cheap")) == 3


def test_filters_endpoint(client):
    data = client.get("/api/menu/filters").json()["data"]

    assert "makanan" in data["categories"]
    assert data["subcategories"] == {"minuman": ["bersoda", "biasa", "kafein"]}


def test_get_single_item(client, menu):
    response = client.get(f"/api/menu/{menu[0]['id']}")

    assert response.status_code == 200
    assert response.json()["data"]["price"] == 25000
    assert response.json()["data"]["isAvailable"] is True

    assert client.get("/api/menu/9999").status_code == 404


def test_menu_changes_are_owner_only(client, staff_headers):
    item = {"name": "Sate", "price": 30000, "category": "makanan"}

    assert client.post("/api/menu", json=item).status_code == 401
    assert client.post("/api/menu", json=item, headers=staff_headers).status_code == 403


def test_create_item_validation(client, owner_headers):
    base = {"name": "Sate", "price": 30000, "category": "makanan"}

    response = client.post("/api/menu", json={**base, "category": "pizza"}, headers=owner_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid category"

    response = client.post("/api/menu", json={**base, "subcategory": "kafein"}, headers=owner_headers)
    assert response.status_code == 400

    response = client.post("/api/menu", json={**base, "imageUrl": "ftp://x/sate.png"}, headers=owner_headers)
    assert response.status_code == 400

    response = client.post("/api/menu", json={**base, "price": -1}, headers=owner_headers)
    assert response.status_code == 422


def test_update_item_is_partial(client, owner_headers, menu):
    item_id = menu[0]["id"]

    response = client.put(
        f"/api/menu/{item_id}",
        json={"price": 27000, "isAvailable": False},
        headers=owner_headers,
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["price"] == 27000
    assert data["isAvailable"] is False
    assert data["name"] == "Nasi Goreng"
    assert data["category"] == "makanan"


def test_update_item_rejects_unknown_category(client, owner_headers, menu):
    response = client.put(
        f"/api/menu/{menu[0]['id']}",
        json={"category": "pizza"},
        headers=owner_headers,
    )
    assert response.status_code == 400


def test_delete_item(client, owner_headers, menu):
    response = client.delete(f"/api/menu/{menu[0]['id']}", headers=owner_headers)

    assert response.status_code == 200
    assert client.get(f"/api/menu/{menu[0]['id']}").status_code == 404


def test_create_duplicate_category(client, owner_headers):
    response = client.post("/api/menu/categories", json={"name": "makanan"}, headers=owner_headers)

    assert response.status_code == 400
    assert response.json()["message"] == "Category already exists"


def test_rename_category_moves_items(client, owner_headers, menu):
    makanan = _category(client, "makanan")

    response = client.put(
        f"/api/menu/categories/{makanan['id']}",
        json={"name": "makanan berat"},
        headers=owner_headers,
    )
    assert response.status_code == 200

    items = client.get("/api/menu", params={"category": "makanan berat"}).json()["data"]["items"]
    assert {item["name"] for item in items} == {"Nasi Goreng", "Mie Ayam"}


def test_delete_category_deletes_its_items(client, owner_headers, menu):
    makanan = _category(client, "makanan")

    response = client.delete(f"/api/menu/categories/{makanan['id']}", headers=owner_headers)

    assert response.status_code == 200
    assert response.json()["data"]["deletedMenuItems"] == 2
    items = client.get("/api/menu").json()["data"]["items"]
    assert [item["name"] for item in items] == ["Es Kopi"]


def test_subcategories(client, owner_headers, menu):
    minuman = _category(client, "minuman")
    url = f"/api/menu/categories/{minuman['id']}/subcategories"

    response = client.post(url, json={"subcategory": "jus"}, headers=owner_headers)
    assert response.status_code == 201
    assert "jus" in response.json()["data"]["subcategories"]

    response = client.post(url, json={"subcategory": "jus"}, headers=owner_headers)
    assert response.status_code == 400

    response = client.delete(f"{url}/kafein", headers=owner_headers)
    assert response.status_code == 200
    assert "kafein" not in response.json()["data"]["subcategories"]

    # Es Kopi was filed under kafein
    assert client.get(f"/api/menu/{menu[2]['id']}").status_code == 404

    assert client.delete(f"{url}/kafein", headers=owner_headers).status_code == 404
