"""
Catalog (brands, categories, suppliers) tests.
"""

import pytest

from femenine.extensions import db
from femenine.models import Brand, Supplier


class TestCatalogCrud:

    @pytest.mark.parametrize("kind,name,stored", [
        ("brands", "zara", "ZARA"),
        ("categories", " vestidos ", "VESTIDOS"),
        ("suppliers", "Textiles del Sur", "Textiles del Sur"),
    ])
    def test_create_normalizes_name(self, client, manager_headers, kind, name, stored):
        resp = client.post(f"/api/catalog/{kind}", json={"name": name}, headers=manager_headers)
        assert resp.status_code == 201, resp.json
        assert resp.json["name"] == stored

    def test_duplicate_is_case_insensitive(self, client, manager_headers, brand):
        resp = client.post("/api/catalog/brands", json={"name": "Zara"}, headers=manager_headers)
        assert resp.status_code == 409

    def test_blank_name(self, client, manager_headers):
        resp = client.post("/api/catalog/categories", json={"name": "  "}, headers=manager_headers)
        assert resp.status_code == 400

    def test_supplier_contact_fields(self, client, manager_headers):
        resp = client.post("/api/catalog/suppliers", json={
            "name": "Proveedor Uno",
            "contact": "Ana",
            "phone": "+56 9 1234 5678",
            "email": "ventas@proveedor.test",
        }, headers=manager_headers)

        assert resp.status_code == 201
        supplier = db.session.get(Supplier, resp.json["id"])
        assert supplier.contact == "Ana"
        assert supplier.phone == "+56 9 1234 5678"

    def test_list_sorted_by_name(self, client, employee_headers, db_session):
        db.session.add_all([Brand(name="MANGO"), Brand(name="ADIDAS")])
        db.session.commit()

        resp = client.get("/api/catalog/brands", headers=employee_headers)
        assert resp.status_code == 200
        assert [b["name"] for b in resp.json] == ["ADIDAS", "MANGO"]

    def test_get_and_update(self, client, manager_headers, category):
        resp = client.get(f"/api/catalog/categories/{category.id}", headers=manager_headers)
        assert resp.status_code == 200

        resp = client.put(f"/api/catalog/categories/{category.id}", json={
            "name": "blusas y tops",
            "description": "Parte superior",
        }, headers=manager_headers)
        assert resp.status_code == 200
        assert resp.json["name"] == "BLUSAS Y TOPS"
        assert resp.json["description"] == "Parte superior"

    def test_missing_entry(self, client, manager_headers):
        assert client.get("/api/catalog/brands/999", headers=manager_headers).status_code == 404
        assert client.put("/api/catalog/brands/999", json={"name": "X"}, headers=manager_headers).status_code == 404
        assert client.delete("/api/catalog/brands/999", headers=manager_headers).status_code == 404

    def test_unknown_catalog_kind(self, client, manager_headers):
        assert client.get("/api/catalog/colors", headers=manager_headers).status_code == 404


class TestCatalogDelete:

    def test_unused_entry_is_deleted(self, client, manager_headers, brand):
        brand_id = brand.id
        resp = client.delete(f"/api/catalog/brands/{brand_id}", headers=manager_headers)
        assert resp.status_code == 204
        db.session.expire_all()
        assert db.session.get(Brand, brand_id) is None

    def test_entry_in_use_cannot_be_deleted(self, client, manager_headers, brand, make_product):
        make_product(brand_id=brand.id)
        resp = client.delete(f"/api/catalog/brands/{brand.id}", headers=manager_headers)
        assert resp.status_code == 409
        assert "1 product" in resp.json["error"]
