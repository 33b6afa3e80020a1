"""Catalog endpoints and the expiry-driven sale price."""

from datetime import date, timedelta

from services import pricing

from conftest import place_order


def iso(days):
    return (date.today() + timedelta(days=days)).isoformat()


class TestAutoSale:
    def test_flip_with_expiry(self, client, staff, make_product):
        product = make_product(price=200, expiry_days=20)

        body = client.get(f"/api/products/{product.id}").get_json()
        assert body["salePrice"] == 180
        assert body["isOnSale"] is True
        assert body["daysUntilExpiry"] == 20

        client.put(f"/api/products/{product.id}", json={"expiryDate": iso(60)}, headers=staff.headers)
        body = client.get(f"/api/products/{product.id}").get_json()
        assert body["isOnSale"] is False
        assert body["salePrice"] is None

    def test_manual_lower_price_is_kept(self, client, staff, make_product):
        product = make_product(price=200, expiry_days=20)
        response = client.patch(f"/api/products/{product.id}/sale", json={"salePrice": 150}, headers=staff.headers)
        assert response.status_code == 200

        body = client.get(f"/api/products/{product.id}").get_json()
        assert body["salePrice"] == 150
        assert body["isOnSale"] is True

    def test_manual_higher_than_auto_loses(self, client, staff, make_product):
        product = make_product(price=200, expiry_days=20)
        client.patch(f"/api/products/{product.id}/sale", json={"salePrice": 190}, headers=staff.headers)
        assert client.get(f"/api/products/{product.id}").get_json()["salePrice"] == 180

    def test_manual_sale_rules(self, client, staff, make_product):
        far = make_product(name="Far", price=200, expiry_days=31)
        near = make_product(name="Near", price=200, expiry_days=30)

        assert client.patch(f"/api/products/{far.id}/sale", json={"salePrice": 150},
                            headers=staff.headers).status_code == 400
        assert client.patch(f"/api/products/{near.id}/sale", json={"salePrice": 200},
                            headers=staff.headers).status_code == 400
        assert client.patch(f"/api/products/{near.id}/sale", json={"salePrice": 150},
                            headers=staff.headers).status_code == 200

    def test_window_edge_on_read(self, client, make_product):
        edge = make_product(name="Edge", price=135, expiry_days=30)
        outside = make_product(name="Outside", price=135, expiry_days=31)

        body = client.get(f"/api/products/{edge.id}").get_json()
        assert body["isOnSale"] is True
        assert body["salePrice"] == 122

        body = client.get(f"/api/products/{outside.id}").get_json()
        assert body["isOnSale"] is False
        assert body["salePrice"] is None

    def test_round_half_up(self):
        assert pricing.round_half_up(0.5) == 1
        assert pricing.round_half_up(2.5) == 3
        assert pricing.round_half_up(134.99) == 135


class TestCatalog:
    def test_listing_filters_and_pages(self, client, make_product):
        make_product(name="Rose Toner", category="Toner", brand="Petal")
        make_product(name="Clay Mask", category="Mask", brand="Petal")
        make_product(name="Aloe Gel", category="Gel", brand="Verde")

        body = client.get("/api/products?brand=Petal").get_json()
        assert body["total"] == 2
        body = client.get("/api/products?search=mask").get_json()
        assert [p["name"] for p in body["products"]] == ["Clay Mask"]
        body = client.get("/api/products?limit=2&page=2").get_json()
        assert len(body["products"]) == 1
        assert body["totalPages"] == 2

    def test_create_requires_staff(self, client, customer, staff):
        body = {"name": "Lip Balm", "price": 50, "stockQuantity": 5, "aiFeatures": {"spf": 15}}
        assert client.post("/api/products", json=body, headers=customer.headers).status_code == 403

        response = client.post("/api/products", json=body, headers=staff.headers)
        assert response.status_code == 201
        assert response.get_json()["product"]["aiFeatures"] == {"spf": "15"}

    def test_only_owner_or_admin_edits(self, client, staff, other_staff, admin, make_product):
        product = make_product(owner=staff)
        assert client.put(f"/api/products/{product.id}", json={"price": 10},
                          headers=other_staff.headers).status_code == 403
        assert client.put(f"/api/products/{product.id}", json={"price": 10},
                          headers=admin.headers).status_code == 200

    def test_delete_blocked_by_active_order(self, client, customer, staff, make_product):
        product = make_product()
        order = place_order(client, customer, [(product.id, 1)])

        assert client.delete(f"/api/products/{product.id}", headers=staff.headers).status_code == 400

        client.patch(f"/api/orders/{order['id']}/update-status",
                     json={"status": "cancelled", "cancelReason": "x"}, headers=staff.headers)
        assert client.delete(f"/api/products/{product.id}", headers=staff.headers).status_code == 200

        body = client.get(f"/api/orders/{order['id']}", headers=customer.headers).get_json()
        assert body["items"][0]["productId"] is None
        assert body["items"][0]["productName"] == "Serum"

    def test_missing_product(self, client):
        assert client.get("/api/products/404").status_code == 404
