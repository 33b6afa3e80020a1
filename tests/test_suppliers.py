"""Supplier CRUD, codes and rating bounds."""

import pytest

from core.extensions import db
from models.inventoryModels import Supplier

SUPPLIER = {
    "name": "Beauty Wholesale",
    "contactPerson": "Minh",
    "email": "Sales@Beauty.example",
    "phone": "0911111111",
    "address": "9 Market St",
    "city": "Da Nang",
    "country": "Vietnam",
}


def create(client, user, **overrides):
    return client.post("/api/suppliers", json={**SUPPLIER, **overrides}, headers=user.headers)


class TestCreateSupplier:
    def test_generates_code(self, client, staff):
        response = create(client, staff)
        assert response.status_code == 201
        supplier = response.get_json()["supplier"]
        assert supplier["code"].startswith("S")
        assert len(supplier["code"]) == 8
        assert supplier["email"] == "sales@beauty.example"
        assert supplier["totalOrders"] == 0

    def test_duplicate_code_conflicts(self, client, staff):
        assert create(client, staff, code="ACME01").status_code == 201
        assert create(client, staff, code="acme01").status_code == 409

    def test_missing_fields(self, client, staff):
        response = client.post("/api/suppliers", json={"name": "Half"}, headers=staff.headers)
        assert response.status_code == 400
        assert "contactPerson" in response.get_json()["fields"]


class TestRating:
    @pytest.mark.parametrize("rating", [1, 5])
    def test_bounds_accepted(self, client, staff, supplier, rating):
        response = client.put(f"/api/suppliers/{supplier.id}/rating", json={"rating": rating},
                              headers=staff.headers)
        assert response.status_code == 200
        assert response.get_json()["supplier"]["rating"] == rating

    @pytest.mark.parametrize("rating", [0, 6, 4.5, None])
    def test_out_of_range_rejected(self, client, staff, supplier, rating):
        response = client.put(f"/api/suppliers/{supplier.id}/rating", json={"rating": rating},
                              headers=staff.headers)
        assert response.status_code == 400


class TestDeleteAndListing:
    def test_delete_blocked_while_batches_hold_stock(self, client, admin, supplier, make_product, make_batch):
        product = make_product(stock=2)
        make_batch(product, remaining=2, expiry_days=100)
        response = client.delete(f"/api/suppliers/{supplier.id}", headers=admin.headers)
        assert response.status_code == 400
        assert db.session.get(Supplier, supplier.id) is not None

    def test_delete_unused_supplier(self, client, admin, supplier):
        response = client.delete(f"/api/suppliers/{supplier.id}", headers=admin.headers)
        assert response.get_json()["deleted"] is True
        assert db.session.get(Supplier, supplier.id) is None

    def test_emptied_supplier_is_deactivated(self, client, admin, supplier, make_product, make_batch):
        product = make_product(stock=0)
        make_batch(product, remaining=0, expiry_days=100, quantity=5)
        response = client.delete(f"/api/suppliers/{supplier.id}", headers=admin.headers)
        assert response.get_json()["deleted"] is False
        assert db.session.get(Supplier, supplier.id).status == "inactive"

    def test_active_listing_and_batches(self, client, staff, supplier, make_product, make_batch):
        create(client, staff, code="OFF01", status="inactive")
        product = make_product(stock=2)
        make_batch(product, remaining=2, expiry_days=100)

        active = client.get("/api/suppliers/active", headers=staff.headers).get_json()["suppliers"]
        assert [s["code"] for s in active] == [supplier.code]

        body = client.get(f"/api/suppliers/{supplier.id}/batches", headers=staff.headers).get_json()
        assert len(body["batches"]) == 1
