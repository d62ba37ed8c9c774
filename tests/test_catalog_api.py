from conftest import bearer


def test_public_menu_hides_inactive(client, db, menu):
    products = client.get("/api/products").json()["products"]
    assert {p["name"] for p in products} == {"Classic Wings", "Fries"}

    by_category = client.get("/api/products", params={"category_id": "other"}).json()["products"]
    assert by_category == []

    assert [c["slug"] for c in client.get("/api/categories").json()["categories"]] == ["wings"]
    assert client.get("/api/delivery-areas").json()["delivery_areas"][0]["delivery_fee"] == 1500


def test_staff_crud(client, db, admin, menu):
    created = client.post(
        "/api/products",
        json={"category_id": menu["category"]["id"], "name": "Wing Bowl", "price": 3500, "sizes": [{"name": "Large", "price": 4500}]},
        headers=bearer("admin-token"),
    )
    assert created.status_code == 201
    product_id = created.json()["id"]
    assert db.one("products", id=product_id)["sizes"] == [{"name": "Large", "price": 4500}]

    updated = client.patch(f"/api/products/{product_id}", json={"price": 3800}, headers=bearer("admin-token"))
    assert updated.json()["price"] == 3800
    assert updated.json()["name"] == "Wing Bowl"

    assert client.delete(f"/api/products/{product_id}", headers=bearer("admin-token")).json() == {"success": True}
    assert client.delete(f"/api/products/{product_id}", headers=bearer("admin-token")).status_code == 404


def test_catalog_permissions(client, db, customer, menu):
    db.add_user("csr-token", role="csr")
    area = {"name": "Ikeja", "delivery_fee": 2000}

    assert client.post("/api/delivery-areas", json=area).status_code == 401
    assert client.post("/api/delivery-areas", json=area, headers=bearer("customer-token")).status_code == 403
    # csr has view only on delivery areas
    assert client.post("/api/delivery-areas", json=area, headers=bearer("csr-token")).status_code == 403


def test_update_needs_fields_and_valid_slug(client, db, admin, menu):
    category_id = menu["category"]["id"]
    assert client.patch(f"/api/categories/{category_id}", json={}, headers=bearer("admin-token")).status_code == 400
    bad_slug = client.patch(f"/api/categories/{category_id}", json={"slug": "Not A Slug"}, headers=bearer("admin-token"))
    assert bad_slug.status_code == 400
    assert bad_slug.json()["error"] == "Invalid request"
