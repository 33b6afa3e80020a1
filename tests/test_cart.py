"""Cart add/merge/update/remove and ownership."""


def add(client, user, product_id, quantity):
    return client.post("/api/cart/items", json={"productId": product_id, "quantity": quantity},
                       headers=user.headers)


class TestAddItem:
    def test_add_returns_subtotal(self, client, customer, make_product):
        product = make_product(price=100, stock=10)
        response = add(client, customer, product.id, 2)
        assert response.status_code == 201
        item = response.get_json()["item"]
        assert item["quantity"] == 2
        assert item["unitPrice"] == 100
        assert item["subtotal"] == 200

    def test_adding_same_product_merges(self, client, customer, make_product):
        product = make_product(stock=10)
        add(client, customer, product.id, 2)
        add(client, customer, product.id, 3)

        cart = client.get("/api/cart", headers=customer.headers).get_json()
        assert len(cart["items"]) == 1
        assert cart["items"][0]["quantity"] == 5
        assert cart["totalAmount"] == 500

    def test_insufficient_stock(self, client, customer, make_product):
        product = make_product(stock=1)
        response = add(client, customer, product.id, 2)
        assert response.status_code == 400
        body = response.get_json()
        assert body["available"] == 1
        assert body["required"] == 2

    def test_whole_stock_can_be_added(self, client, customer, make_product):
        product = make_product(stock=3)
        response = add(client, customer, product.id, 3)
        assert response.status_code == 201
        assert response.get_json()["item"]["quantity"] == 3

    def test_unknown_product(self, client, customer):
        assert add(client, customer, 999, 1).status_code == 404

    def test_non_positive_quantity(self, client, customer, make_product):
        product = make_product()
        assert add(client, customer, product.id, 0).status_code == 400
        assert add(client, customer, product.id, "2").status_code == 400


class TestUpdateAndRemove:
    def test_update_quantity(self, client, customer, make_product):
        product = make_product(stock=10)
        item_id = add(client, customer, product.id, 1).get_json()["item"]["id"]

        response = client.put(f"/api/cart/items/{item_id}", json={"quantity": 4}, headers=customer.headers)
        assert response.status_code == 200
        assert response.get_json()["item"]["subtotal"] == 400

    def test_update_checks_stock(self, client, customer, make_product):
        product = make_product(stock=3)
        item_id = add(client, customer, product.id, 1).get_json()["item"]["id"]
        response = client.put(f"/api/cart/items/{item_id}", json={"quantity": 4}, headers=customer.headers)
        assert response.status_code == 400

    def test_remove_restores_empty_cart(self, client, customer, make_product):
        product = make_product()
        item_id = add(client, customer, product.id, 2).get_json()["item"]["id"]

        response = client.delete(f"/api/cart/items/{item_id}", headers=customer.headers)
        assert response.status_code == 200
        cart = client.get("/api/cart", headers=customer.headers).get_json()
        assert cart["items"] == []
        assert cart["totalAmount"] == 0

    def test_other_customer_cannot_touch_item(self, client, customer, other_customer, make_product):
        product = make_product()
        item_id = add(client, customer, product.id, 1).get_json()["item"]["id"]

        response = client.put(f"/api/cart/items/{item_id}", json={"quantity": 2},
                              headers=other_customer.headers)
        assert response.status_code == 403
        response = client.delete(f"/api/cart/items/{item_id}", headers=other_customer.headers)
        assert response.status_code == 403

    def test_missing_item(self, client, customer):
        response = client.delete("/api/cart/items/42", headers=customer.headers)
        assert response.status_code == 404
