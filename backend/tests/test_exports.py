"""
CSV / XLSX export tests.
"""

import csv
import io

import pytest
from openpyxl import load_workbook

from femenine.services import export_service
from femenine.time_utils import utcnow


def _csv_rows(resp):
    text = resp.data.decode("utf-8-sig")
    return list(csv.reader(io.StringIO(text)))


class TestExports:

    def test_products_csv(self, client, manager_headers, make_product, brand):
        make_product(name="Blusa Floral", price_cents=15000, stock=3, brand_id=brand.id, sku="BLU-1")

        resp = client.get("/api/exports/products", headers=manager_headers)

        assert resp.status_code == 200
        assert resp.mimetype == "text/csv"
        assert resp.data.startswith(b"\xef\xbb\xbf")
        disposition = resp.headers["Content-Disposition"]
        assert disposition == f'attachment; filename="products_{utcnow():%Y%m%d}.csv"'

        rows = _csv_rows(resp)
        assert rows[0] == export_service.PRODUCT_COLUMNS
        record = dict(zip(rows[0], rows[1]))
        assert record["sku"] == "BLU-1"
        assert record["brand"] == "ZARA"
        assert record["salePrice"] == "150.0"
        assert record["stock"] == "3"
        assert record["isActive"] == "yes"

    def test_products_xlsx(self, client, manager_headers, make_product):
        make_product(name="Falda", sku="FAL-1")

        resp = client.get("/api/exports/products?format=xlsx", headers=manager_headers)

        assert resp.status_code == 200
        assert resp.mimetype == export_service.FORMATS["xlsx"]
        assert resp.headers["Content-Disposition"].endswith('.xlsx"')

        wb = load_workbook(io.BytesIO(resp.data))
        ws = wb.active
        assert ws.title == "products"
        values = list(ws.values)
        assert list(values[0]) == export_service.PRODUCT_COLUMNS
        assert values[1][1] == "FAL-1"

    def test_low_stock_export(self, client, manager_headers, make_product):
        make_product(name="Poco", stock=0, stock_min=1, sku="LOW-1")
        make_product(name="Mucho", stock=9, stock_min=1, sku="OK-1")

        rows = _csv_rows(client.get("/api/exports/low_stock", headers=manager_headers))
        assert [row[1] for row in rows[1:]] == ["LOW-1"]

    def test_sales_export_has_one_row_per_item(self, client, manager_headers, make_product):
        a = make_product(name="A", price_cents=1000, sku="A-1")
        b = make_product(name="B", price_cents=2000, sku="B-1")
        resp = client.post("/api/sales", json={
            "items": [{"productId": a.id, "quantity": 2}, {"productId": b.id, "quantity": 1}],
            "taxRate": 0,
        }, headers=manager_headers)
        folio = resp.json["folio"]

        rows = _csv_rows(client.get("/api/exports/sales", headers=manager_headers))
        header, data = rows[0], rows[1:]
        assert len(data) == 2
        records = [dict(zip(header, row)) for row in data]
        assert {r["sku"] for r in records} == {"A-1", "B-1"}
        assert all(r["folio"] == str(folio) for r in records)
        assert all(r["total"] == "40.0" for r in records)

    def test_sales_export_date_filter(self, client, manager_headers, make_product):
        product = make_product()
        client.post("/api/sales", json={"items": [{"productId": product.id, "quantity": 1}]},
                    headers=manager_headers)

        resp = client.get("/api/exports/sales?startDate=2000-01-01&endDate=2000-12-31", headers=manager_headers)
        assert len(_csv_rows(resp)) == 1

    def test_admin_exports_users_and_logs(self, client, admin_headers, employee):
        rows = _csv_rows(client.get("/api/exports/users", headers=admin_headers))
        assert rows[0][:3] == ["id", "email", "name"]
        assert {row[1] for row in rows[1:]} == {"admin@femenine.test", "employee@femenine.test"}

        resp = client.get("/api/exports/activity_logs?format=xlsx", headers=admin_headers)
        assert resp.status_code == 200

    def test_unknown_dataset(self, client, manager_headers):
        assert client.get("/api/exports/invoices", headers=manager_headers).status_code == 404

    @pytest.mark.parametrize("fmt", ["pdf", "json"])
    def test_unknown_format(self, client, manager_headers, fmt):
        resp = client.get(f"/api/exports/products?format={fmt}", headers=manager_headers)
        assert resp.status_code == 400

    def test_bad_date(self, client, manager_headers):
        resp = client.get("/api/exports/sales?startDate=soon", headers=manager_headers)
        assert resp.status_code == 400
