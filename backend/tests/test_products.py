"""
Product management tests: CRUD, SKU generation, lifecycle, restock, import.
"""

import io

import pytest
from openpyxl import Workbook
from sqlalchemy import update

from femenine.extensions import db
from femenine.models import (
    ActivityAction,
    ActivityLog,
    Brand,
    Category,
    Product,
    Purchase,
    PurchaseItem,
    StockMovement,
    Supplier,
)
from femenine.services import products_service
from femenine.services.sku_service import generate_sku, month_prefix
from femenine.time_utils import utcnow
from femenine.validation import MAX_QUANTITY, ConflictError


def _logs(action):
    return db.session.query(ActivityLog).filter_by(action=action).all()


class TestCreateProduct:

    def test_create_single_product(self, client, admin_headers, brand, category):
        resp = client.post("/api/products", json={
            "name": "Blusa Floral",
            "sku": "blu-001",
            "salePrice": 149.99,
            "costPrice": "80",
            "stock": 12,
            "stockMin": 3,
            "size": "M",
            "brandId": brand.id,
            "categoryId": category.id,
        }, headers=admin_headers)

        assert resp.status_code == 201, resp.json
        product = resp.json["products"][0]
        assert product["sku"] == "BLU-001"
        assert product["salePrice"] == 149.99
        assert product["costPrice"] == 80.0
        assert product["stockCached"] == 12
        assert product["brand"]["name"] == "ZARA"
        assert product["isActive"] is True

        stored = db.session.get(Product, product["id"])
        assert stored.sale_price_cents == 14999

        assert len(_logs(ActivityAction.CREATE_PRODUCT)) == 1

    def test_initial_stock_creates_no_movement(self, client, admin_headers):
        resp = client.post("/api/products", json={"name": "Falda", "stock": 4}, headers=admin_headers)
        assert resp.status_code == 201
        assert db.session.query(StockMovement).count() == 0

    def test_sku_is_generated_when_missing(self, client, admin_headers):
        resp = client.post("/api/products", json=[
            {"name": "Vestido A"},
            {"name": "Vestido B"},
        ], headers=admin_headers)

        assert resp.status_code == 201
        prefix = month_prefix(utcnow())
        skus = [p["sku"] for p in resp.json["products"]]
        assert skus == [f"{prefix}000001", f"{prefix}000002"]

    def test_generated_sku_continues_sequence(self, app, db_session, make_product):
        prefix = month_prefix(utcnow())
        make_product(sku=f"{prefix}000041")
        assert generate_sku() == f"{prefix}000042"
        assert generate_sku(reserved={f"{prefix}000042"}) == f"{prefix}000043"

    def test_duplicate_sku(self, client, admin_headers, make_product):
        make_product(sku="DUP-1")
        resp = client.post("/api/products", json={"name": "Otro", "sku": "dup-1"}, headers=admin_headers)
        assert resp.status_code == 409

    def test_batch_is_all_or_nothing(self, client, admin_headers):
        resp = client.post("/api/products", json=[
            {"name": "Bueno"},
            {"name": ""},
        ], headers=admin_headers)

        assert resp.status_code == 400
        assert "Product #2" in resp.json["error"]
        assert db.session.query(Product).count() == 0

    @pytest.mark.parametrize("payload", [
        {},
        {"name": "X", "salePrice": -1},
        {"name": "X", "salePrice": "abc"},
        {"name": "X", "stock": -2},
        {"name": "X", "brandId": 99999},
    ])
    def test_invalid_payloads(self, client, admin_headers, payload):
        resp = client.post("/api/products", json=payload, headers=admin_headers)
        assert resp.status_code == 400

    def test_employee_cannot_create(self, client, employee_headers):
        resp = client.post("/api/products", json={"name": "X"}, headers=employee_headers)
        assert resp.status_code == 403
        assert resp.json["required_permission"] == "CREATE_PRODUCTS"


class TestReadProducts:

    def test_list_hides_inactive_by_default(self, client, employee_headers, make_product):
        active = make_product(name="Activo")
        make_product(name="Inactivo", is_active=False)

        resp = client.get("/api/products", headers=employee_headers)
        assert resp.status_code == 200
        assert [p["id"] for p in resp.json["products"]] == [active.id]
        assert resp.json["count"] == 1

        resp = client.get("/api/products?includeInactive=true", headers=employee_headers)
        assert resp.json["count"] == 2

    def test_get_by_id_records_view(self, client, employee, employee_headers, make_product):
        product = make_product()
        resp = client.get(f"/api/products/{product.id}", headers=employee_headers)

        assert resp.status_code == 200
        assert resp.json["product"]["sku"] == product.sku
        views = _logs(ActivityAction.VIEW_PRODUCT)
        assert len(views) == 1
        assert views[0].user_id == employee.id
        assert views[0].product_sku == product.sku

    def test_get_missing_product(self, client, employee_headers):
        assert client.get("/api/products/424242", headers=employee_headers).status_code == 404

    def test_lookup_by_sku_is_case_insensitive(self, client, employee_headers, make_product):
        product = make_product(sku="FEM-2026-10-000007")
        resp = client.get("/api/products/sku/fem-2026-10-000007", headers=employee_headers)
        assert resp.status_code == 200
        assert resp.json["product"]["id"] == product.id

        assert client.get("/api/products/sku/NOPE", headers=employee_headers).status_code == 404

    def test_low_stock(self, client, employee_headers, make_product):
        empty = make_product(name="Agotado", stock=0, stock_min=2)
        at_min = make_product(name="Justo", stock=2, stock_min=2)
        make_product(name="Sobrado", stock=20, stock_min=2)
        make_product(name="Inactivo", stock=0, stock_min=2, is_active=False)

        resp = client.get("/api/products/low-stock", headers=employee_headers)
        assert resp.status_code == 200
        assert [p["id"] for p in resp.json["products"]] == [empty.id, at_min.id]
        assert all(p["isLowStock"] for p in resp.json["products"])


class TestUpdateProduct:

    def test_partial_update(self, client, admin_headers, make_product):
        product = make_product(name="Viejo", price_cents=1000)

        resp = client.put(f"/api/products/{product.id}", json={
            "name": "Nuevo",
            "stockCached": 7,
        }, headers=admin_headers)

        assert resp.status_code == 200
        data = resp.json["product"]
        assert data["name"] == "Nuevo"
        assert data["stockCached"] == 7
        assert data["salePrice"] == 10.0

        log = _logs(ActivityAction.UPDATE_PRODUCT)[0]
        assert "name" in log.details and "stock_cached" in log.details

    def test_update_to_taken_sku(self, client, admin_headers, make_product):
        make_product(sku="TAKEN")
        product = make_product(sku="FREE")
        resp = client.put(f"/api/products/{product.id}", json={"sku": "taken"}, headers=admin_headers)
        assert resp.status_code == 409

    def test_update_missing_product(self, client, admin_headers):
        resp = client.put("/api/products/99999", json={"name": "X"}, headers=admin_headers)
        assert resp.status_code == 404

    def test_oversized_stock_is_rejected(self, client, admin_headers, make_product):
        product = make_product(stock=5)
        resp = client.put(f"/api/products/{product.id}", json={"stockCached": 10**20},
                          headers=admin_headers)
        assert resp.status_code == 400

    def test_edit_of_stale_product_is_a_conflict(self, app, db_session, make_product):
        product = make_product(name="Blusa Floral", stock=5)
        assert product.version_id == 1

        # Another request bumps the row version behind this session's back.
        db.session.execute(
            update(Product)
            .where(Product.id == product.id)
            .values(version_id=Product.version_id + 1)
            .execution_options(synchronize_session=False)
        )

        with pytest.raises(ConflictError):
            products_service.update_product(product.id, {"name": "Blusa Lisa"})

        db.session.expire_all()
        fresh = db.session.get(Product, product.id)
        assert fresh.name == "Blusa Floral"
        assert fresh.version_id == 1


class TestProductLifecycle:

    def test_product_without_history_is_deleted(self, client, admin_headers, make_product):
        product = make_product()
        product_id = product.id

        resp = client.get(f"/api/products/{product_id}/deletability", headers=admin_headers)
        assert resp.json["canBeDeleted"] is True

        resp = client.delete(f"/api/products/{product_id}", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["type"] == "deleted"

        db.session.expire_all()
        assert db.session.get(Product, product_id) is None
        log = _logs(ActivityAction.DELETE_PRODUCT)[0]
        assert log.product_id == product_id

    def test_product_with_sales_is_deactivated(self, client, admin_headers, employee_headers, make_product):
        product = make_product(stock=5)
        resp = client.post("/api/sales", json={
            "items": [{"productId": product.id, "quantity": 1}],
        }, headers=employee_headers)
        assert resp.status_code == 201

        resp = client.get(f"/api/products/{product.id}/deletability", headers=admin_headers)
        assert resp.json["canBeDeleted"] is False
        assert resp.json["details"]["sales"] == 1
        assert resp.json["details"]["movements"] == 1

        resp = client.delete(f"/api/products/{product.id}", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["type"] == "deactivated"
        assert resp.json["product"]["isActive"] is False

        resp = client.patch(f"/api/products/{product.id}/reactivate", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["product"]["isActive"] is True

        resp = client.patch(f"/api/products/{product.id}/reactivate", headers=admin_headers)
        assert resp.status_code == 409

    def test_product_with_purchases_only_is_deactivated(self, client, admin, admin_headers, make_product):
        product = make_product(stock=0)
        purchase = Purchase(user_id=admin.id, total_cents=8000)
        db.session.add(purchase)
        db.session.flush()
        db.session.add(PurchaseItem(purchase_id=purchase.id, product_id=product.id,
                                    quantity=1, unit_cost_cents=8000))
        db.session.commit()

        resp = client.get(f"/api/products/{product.id}/deletability", headers=admin_headers)
        assert resp.json["canBeDeleted"] is False
        assert resp.json["details"] == {"movements": 0, "sales": 0, "purchases": 1}

        resp = client.delete(f"/api/products/{product.id}", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["type"] == "deactivated"
        db.session.expire_all()
        assert db.session.get(Product, product.id) is not None

    def test_product_with_restock_only_is_deactivated(self, client, admin_headers, manager_headers, make_product):
        product = make_product(stock=0)
        resp = client.post(f"/api/products/{product.id}/restock", json={"quantity": 4},
                           headers=manager_headers)
        assert resp.status_code == 200

        resp = client.get(f"/api/products/{product.id}/deletability", headers=admin_headers)
        assert resp.json["canBeDeleted"] is False
        assert resp.json["details"] == {"movements": 1, "sales": 0, "purchases": 0}

        resp = client.delete(f"/api/products/{product.id}", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["type"] == "deactivated"
        assert resp.json["product"]["stockCached"] == 4

    def test_deactivate_and_reactivate_keep_other_fields(self, client, admin_headers, manager_headers,
                                                         make_product, brand, category):
        supplier = Supplier(name="Textiles del Sur")
        db.session.add(supplier)
        db.session.commit()
        product = make_product(
            name="Vestido Lino", price_cents=32990, stock=3, stock_min=2,
            cost_price_cents=18000, size="S", color="Negro", barcode="7801234567890",
            description="Vestido de lino", brand_id=brand.id, category_id=category.id,
            supplier_id=supplier.id,
        )
        client.post(f"/api/products/{product.id}/restock", json={"quantity": 1}, headers=manager_headers)

        volatile = {"isActive", "updatedAt", "versionId"}

        def snapshot():
            resp = client.get(f"/api/products/{product.id}", headers=admin_headers)
            assert resp.status_code == 200
            return {k: v for k, v in resp.json["product"].items() if k not in volatile}

        before = snapshot()
        assert before["stockCached"] == 4

        resp = client.delete(f"/api/products/{product.id}", headers=admin_headers)
        assert resp.json["type"] == "deactivated"
        assert snapshot() == before

        resp = client.patch(f"/api/products/{product.id}/reactivate", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["product"]["isActive"] is True
        assert snapshot() == before

    def test_manager_cannot_delete(self, client, manager_headers, make_product):
        product = make_product()
        resp = client.delete(f"/api/products/{product.id}", headers=manager_headers)
        assert resp.status_code == 403


class TestRestock:

    def test_restock_adds_stock_and_movement(self, client, manager, manager_headers, make_product):
        product = make_product(stock=2)

        resp = client.post(f"/api/products/{product.id}/restock", json={
            "quantity": 10,
            "note": "Pedido proveedor",
        }, headers=manager_headers)

        assert resp.status_code == 200
        assert resp.json["previousStock"] == 2
        assert resp.json["newStock"] == 12
        assert resp.json["product"]["stockCached"] == 12

        movement = db.session.query(StockMovement).filter_by(product_id=product.id).one()
        assert movement.type == StockMovement.TYPE_IN
        assert movement.quantity == 10
        assert movement.user_id == manager.id
        assert movement.note == "Pedido proveedor"

    @pytest.mark.parametrize("quantity", [0, -5, None, "x"])
    def test_restock_rejects_bad_quantity(self, client, manager_headers, make_product, quantity):
        product = make_product(stock=2)
        resp = client.post(f"/api/products/{product.id}/restock", json={"quantity": quantity},
                           headers=manager_headers)
        assert resp.status_code == 400

    @pytest.mark.parametrize("quantity", [MAX_QUANTITY + 1, 10**20])
    def test_restock_rejects_oversized_quantity(self, client, manager_headers, make_product, quantity):
        product = make_product(stock=2)
        resp = client.post(f"/api/products/{product.id}/restock", json={"quantity": quantity},
                           headers=manager_headers)
        assert resp.status_code == 400
        assert "quantity" in resp.json["error"]

        db.session.expire_all()
        assert db.session.get(Product, product.id).stock_cached == 2
        assert db.session.query(StockMovement).count() == 0

    def test_restock_missing_product(self, client, manager_headers):
        resp = client.post("/api/products/31337/restock", json={"quantity": 1}, headers=manager_headers)
        assert resp.status_code == 404

    def test_employee_cannot_restock(self, client, employee_headers, make_product):
        product = make_product()
        resp = client.post(f"/api/products/{product.id}/restock", json={"quantity": 1},
                           headers=employee_headers)
        assert resp.status_code == 403


class TestPrintLabel:

    def test_print_is_logged(self, client, employee_headers, make_product):
        product = make_product()
        resp = client.post(f"/api/products/{product.id}/print", json={"copies": 3}, headers=employee_headers)

        assert resp.status_code == 200
        assert resp.json["copies"] == 3
        log = _logs(ActivityAction.PRINT_BARCODE)[0]
        assert "3 label(s)" in log.details

    def test_too_many_copies(self, client, employee_headers, make_product):
        product = make_product()
        resp = client.post(f"/api/products/{product.id}/print",
                           json={"copies": products_service.MAX_LABEL_COPIES + 1}, headers=employee_headers)
        assert resp.status_code == 400
        assert _logs(ActivityAction.PRINT_BARCODE) == []

    def test_unexpected_failure_returns_json_500(self, client, employee_headers, make_product, monkeypatch):
        product = make_product()

        def broken(*args, **kwargs):
            raise RuntimeError("printer spool unavailable")

        monkeypatch.setattr(products_service, "print_label", broken)

        resp = client.post(f"/api/products/{product.id}/print", json={}, headers=employee_headers)
        assert resp.status_code == 500
        assert resp.json == {"error": "Internal server error"}


class TestImport:

    def test_json_import_reports_rows(self, client, admin_headers, make_product):
        make_product(sku="EXISTING")

        resp = client.post("/api/products/import", json={"products": [
            {"name": "Blusa", "salePrice": 99.9, "stock": 3, "category": "blusas", "brand": "mango"},
            {"name": "", "salePrice": 10},
            {"name": "Repetida", "sku": "existing"},
            {"name": "Falda", "salePrice": "abc"},
        ]}, headers=admin_headers)

        assert resp.status_code == 200
        body = resp.json
        assert body["successCount"] == 1
        assert body["duplicateCount"] == 1
        assert body["errorCount"] == 2
        assert body["success"] is False
        assert body["errors"][0].startswith("Row 3:")
        assert body["errors"][1].startswith("Row 5:")

        imported = db.session.query(Product).filter_by(name="Blusa").one()
        assert imported.sale_price_cents == 9990
        assert imported.category.name == "BLUSAS"
        assert imported.brand.name == "MANGO"
        assert db.session.query(StockMovement).count() == 0

    def test_import_reuses_existing_catalog_entries(self, client, admin_headers, category):
        resp = client.post("/api/products/import", json={"products": [
            {"name": "A", "category": "Blusas"},
            {"name": "B", "category": "BLUSAS"},
        ]}, headers=admin_headers)

        assert resp.json["success"] is True
        assert db.session.query(Category).count() == 1

    def test_csv_upload(self, client, admin_headers):
        content = "name,sku,salePrice,stock,brand\nCamisa,cam-1,120.50,4,zara\nPantalon,,80,2,\n"
        resp = client.post(
            "/api/products/import",
            data={"file": (io.BytesIO(content.encode("utf-8-sig")), "productos.csv")},
            content_type="multipart/form-data",
            headers=admin_headers,
        )

        assert resp.status_code == 200, resp.json
        assert resp.json["successCount"] == 2
        camisa = db.session.query(Product).filter_by(sku="CAM-1").one()
        assert camisa.sale_price_cents == 12050
        assert camisa.stock_cached == 4
        assert db.session.query(Brand).filter_by(name="ZARA").count() == 1

    def test_xlsx_upload(self, client, admin_headers):
        wb = Workbook()
        ws = wb.active
        ws.append(["name", "salePrice", "stock"])
        ws.append(["Chaqueta", 350, 1])
        buffer = io.BytesIO()
        wb.save(buffer)
        buffer.seek(0)

        resp = client.post(
            "/api/products/import",
            data={"file": (buffer, "productos.xlsx")},
            content_type="multipart/form-data",
            headers=admin_headers,
        )

        assert resp.status_code == 200, resp.json
        assert resp.json["successCount"] == 1
        assert db.session.query(Product).filter_by(name="Chaqueta").one().sale_price_cents == 35000

    def test_unsupported_upload(self, client, admin_headers):
        resp = client.post(
            "/api/products/import",
            data={"file": (io.BytesIO(b"hello"), "productos.txt")},
            content_type="multipart/form-data",
            headers=admin_headers,
        )
        assert resp.status_code == 400

    def test_empty_import(self, client, admin_headers):
        resp = client.post("/api/products/import", json={"products": []}, headers=admin_headers)
        assert resp.status_code == 400
