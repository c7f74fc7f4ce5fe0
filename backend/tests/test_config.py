"""
System configuration (SystemConfig) tests.
"""

import pytest

from femenine.services import config_service
from femenine.validation import NotFoundError, ValidationError


class TestConfigService:

    def test_set_and_get(self, app, db_session):
        config_service.set_value("printer_name", "Zebra ZD220", description="Label printer")
        assert config_service.get_value("printer_name") == "Zebra ZD220"
        assert config_service.get_entry("printer_name").description == "Label printer"

    def test_overwrite_keeps_single_row(self, app, db_session):
        config_service.set_value("label_width", 50)
        config_service.set_value("label_width", 60)
        assert config_service.get_all() == {"label_width": "60"}

    def test_booleans_are_stored_as_text(self, app, db_session):
        config_service.set_value("print_logo", True)
        assert config_service.get_value("print_logo") == "true"

    def test_missing_key(self, app, db_session):
        assert config_service.get_value("nope", default="fallback") == "fallback"
        with pytest.raises(NotFoundError):
            config_service.get_entry("nope")

    @pytest.mark.parametrize("key,value", [("store_name", ""), ("store_name", None), ("", "x")])
    def test_rejects_empty(self, app, db_session, key, value):
        with pytest.raises(ValidationError):
            config_service.set_value(key, value)

    def test_bulk_skips_empty_values(self, app, db_session):
        entries = config_service.set_many({"a": "1", "b": "", "c": None, "d": 4})
        assert [e.key for e in entries] == ["a", "d"]
        assert config_service.get_all() == {"a": "1", "d": "4"}


class TestConfigRoutes:

    def test_admin_round_trip(self, client, admin_headers, manager_headers):
        resp = client.post("/api/config", json={
            "store_name": "FEMENINE Centro",
            "label_template": "",
        }, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["updated"] == 1

        resp = client.get("/api/config", headers=manager_headers)
        assert resp.status_code == 200
        assert resp.json == {"store_name": "FEMENINE Centro"}

        resp = client.get("/api/config/store_name", headers=manager_headers)
        assert resp.json == {"key": "store_name", "value": "FEMENINE Centro"}

    def test_put_single_key(self, client, admin_headers):
        resp = client.put("/api/config/receipt_footer", json={
            "value": "Gracias por su compra",
            "description": "Printed at the bottom of receipts",
        }, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["value"] == "Gracias por su compra"
        assert resp.json["description"] == "Printed at the bottom of receipts"

    def test_put_without_value(self, client, admin_headers):
        resp = client.put("/api/config/receipt_footer", json={}, headers=admin_headers)
        assert resp.status_code == 400

    def test_get_missing_key(self, client, admin_headers):
        assert client.get("/api/config/unknown", headers=admin_headers).status_code == 404

    def test_post_requires_object(self, client, admin_headers):
        resp = client.post("/api/config", json=["a", "b"], headers=admin_headers)
        assert resp.status_code == 400
