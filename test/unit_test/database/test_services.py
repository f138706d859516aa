"""
Unit tests for the transactional service layer on an in-memory database.

Tests cover:
- Registration and login
- Asset CRUD, code uniqueness and bulk import of an extraction
- Aliases
- Work orders, consumed parts and stock
- Inventory and dashboard counters
- Malformed identifiers
"""

import uuid

import pytest

from opengmao.database.config.config import settings
from opengmao.database.core import funcs
from opengmao.database.helpers.identifiers import to_uuid

ORG = str(uuid.uuid4())


def make_asset(name="Compresseur GA37", code="CMP-001", **fields):
    data = {"name": name, "code": code, "location": "Atelier A", **fields}
    res = funcs.create_asset(data=data, organization_id=ORG, created_by=None)
    assert res["res"]
    return res["asset"]


class TestUsers:
    """Test register_user and login_user."""

    def test_register_then_login(self, db_engine):
        """Test that a registered user can log in with a normalized email."""
        res = funcs.register_user(email=" Tech@Plant.ma ", password="secret123", full_name="Amina",
                                  organization_id=ORG)
        assert res["res"] is True
        assert res["user_details"]["email"] == "tech@plant.ma"
        assert res["user_details"]["role"] == "technician"

        auth = funcs.login_user(email="tech@plant.ma", password="secret123")
        assert auth["authenticated"] is True
        assert auth["user_details"]["organization_id"] == ORG
        assert funcs.get_user(user_id=auth["user_details"]["id"])["full_name"] == "Amina"

    def test_wrong_password_and_unknown_email(self, db_engine):
        """Test both login failures."""
        funcs.register_user(email="tech@plant.ma", password="secret123")
        assert funcs.login_user(email="tech@plant.ma", password="nope12345")["detail"] == "Password is wrong"
        assert funcs.login_user(email="other@plant.ma", password="secret123")["authenticated"] is False

    def test_duplicate_email_and_weak_password(self, db_engine):
        """Test registration refusals."""
        funcs.register_user(email="tech@plant.ma", password="secret123")
        assert funcs.register_user(email="tech@plant.ma", password="secret123")["detail"] == "Email already exists"
        assert funcs.register_user(email="new@plant.ma", password="short")["res"] is False


class TestAssets:
    """Test asset services."""

    def test_create_get_list(self, db_engine):
        """Test creation, retrieval and organization listing."""
        asset = make_asset(category="Compressor")
        assert asset["status"] == "operational"

        fetched = funcs.get_asset(asset_id=asset["id"], with_extraction=False)
        assert fetched["name"] == "Compresseur GA37"
        assert "diagnostic_codes" not in fetched
        assert [a["id"] for a in funcs.list_assets(organization_id=ORG)] == [asset["id"]]
        assert funcs.list_assets(organization_id=str(uuid.uuid4())) == []

    def test_duplicate_code(self, db_engine):
        """Test that asset codes are unique."""
        make_asset()
        res = funcs.create_asset(data={"name": "Autre", "code": "CMP-001", "location": "B"}, organization_id=ORG)
        assert res == {"res": False, "detail": "Code d'actif déjà existant"}

    def test_update_and_delete(self, db_engine):
        """Test partial update and deletion."""
        asset = make_asset()
        updated = funcs.update_asset(asset_id=asset["id"], fields={"status": "down", "custom_name": "le gros"})
        assert updated["status"] == "down"
        assert updated["custom_name"] == "le gros"

        assert funcs.delete_asset(asset_id=asset["id"]) is True
        assert funcs.get_asset(asset_id=asset["id"]) is None
        assert funcs.update_asset(asset_id=asset["id"], fields={"status": "down"}) is None

    def test_list_other_assets(self, db_engine):
        """Test that the asset itself is excluded."""
        first = make_asset()
        second = make_asset(name="Sécheur FD120", code="SEC-002")
        others = funcs.list_other_assets(organization_id=ORG, exclude_id=first["id"])
        assert others == [{"id": second["id"], "name": "Sécheur FD120"}]


class TestBulkImport:
    """Test bulk_import_asset."""

    PAYLOAD = {
        "main_asset": {"name": "Compresseur GA37", "location": "Salle compresseurs", "model_number": "GA37VSD",
                       "manufacturer": "Atlas Copco"},
        "components": [{"name": "Moteur principal"}, {"name": "Sécheur intégré", "location": "Skid"}],
        "spare_parts": [{"name": "Filtre à huile", "reference": "1613610590", "quantity_recommended": 2},
                        {"name": "Séparateur"}],
        "diagnostic_codes": [{"code": "E01", "description": "Température élevée"}],
        "completeness_score": 82,
    }

    def test_creates_asset_components_and_parts(self, db_engine):
        """Test the imported rows and the QR payload."""
        res = funcs.bulk_import_asset(payload=self.PAYLOAD, organization_id=ORG)

        assert res["res"] is True
        assert res["imported_components"] == 2
        assert res["imported_parts"] == 2
        assert res["qr_code_data"] == f"{settings.FRONTEND_URL}/scan/{res['asset_id']}"

        asset = funcs.get_asset(asset_id=res["asset_id"], with_extraction=True)
        assert asset["code"] == "GA37VSD"
        assert asset["completeness_score"] == 82
        assert asset["diagnostic_codes"] == [{"code": "E01", "description": "Température élevée"}]

        children = {a["code"]: a for a in funcs.list_assets(organization_id=ORG) if a["parent_id"]}
        assert set(children) == {"GA37VSD-COMP-1", "GA37VSD-COMP-2"}
        assert children["GA37VSD-COMP-1"]["location"] == "Salle compresseurs"
        assert children["GA37VSD-COMP-2"]["location"] == "Skid"

        parts = {p["name"]: p for p in funcs.list_parts()}
        assert parts["Filtre à huile"]["stock_qty"] == 0
        assert parts["Filtre à huile"]["min_threshold"] == 2
        assert parts["Filtre à huile"]["reference"].startswith("1613610590-")
        assert parts["Séparateur"]["reference"].startswith("REF-")
        assert parts["Séparateur"]["location"] == "Magasin"

    def test_generated_code_without_model_number(self, db_engine):
        """Test the AI code when the extraction has no model number."""
        payload = {"main_asset": {"name": "pompe doseuse", "location": "Station"}}
        res = funcs.bulk_import_asset(payload=payload, organization_id=ORG)
        code = funcs.get_asset(asset_id=res["asset_id"])["code"]
        assert code.startswith("AI-")
        assert code.endswith("-POM")

    def test_duplicate_code(self, db_engine):
        """Test that importing the same model twice is refused."""
        funcs.bulk_import_asset(payload=self.PAYLOAD, organization_id=ORG)
        res = funcs.bulk_import_asset(payload=self.PAYLOAD, organization_id=ORG)
        assert res == {"res": False, "detail": "Code d'actif déjà existant"}


class TestAliases:
    """Test alias services."""

    def test_add_list_delete(self, db_engine):
        """Test the alias lifecycle and duplicate detection on the normalized form."""
        asset = make_asset()
        res = funcs.add_alias(asset_id=asset["id"], alias=" Le Gros Compresseur ", language=None, is_primary=True)
        assert res["res"] is True
        assert res["alias"]["alias"] == "Le Gros Compresseur"
        assert res["alias"]["alias_normalized"] == "le gros compresseur"
        assert res["alias"]["language"] == "en"

        duplicate = funcs.add_alias(asset_id=asset["id"], alias="le gros compresseur")
        assert duplicate == {"res": False, "detail": "This alias already exists for this asset"}

        aliases = funcs.list_aliases(asset_id=asset["id"])
        assert len(aliases) == 1
        assert funcs.delete_alias(asset_id=asset["id"], alias_id=aliases[0]["id"]) is True
        assert funcs.list_aliases(asset_id=asset["id"]) == []


class TestWorkOrdersAndInventory:
    """Test work orders, parts and dashboard counters."""

    def test_status_changes_stamp_closed_at(self, db_engine):
        """Test that closing stamps closed_at and reopening clears it."""
        asset = make_asset()
        wo = funcs.create_work_order(description="Fuite d'huile au niveau du carter", asset_id=asset["id"])
        assert wo["status"] == "open"
        assert wo["closed_at"] is None

        closed = funcs.update_work_order_status(work_order_id=wo["id"], status="closed")
        assert closed["closed_at"] is not None
        reopened = funcs.update_work_order_status(work_order_id=wo["id"], status="in_progress")
        assert reopened["closed_at"] is None

    def test_unknown_work_order(self, db_engine):
        """Test updates of a missing work order."""
        missing = str(uuid.uuid4())
        assert funcs.update_work_order_status(work_order_id=missing, status="closed") is None
        assert funcs.get_work_order_details(work_order_id=missing) is None
        assert funcs.delete_work_order(work_order_id=missing) is False

    def test_add_part_decrements_stock(self, db_engine):
        """Test consumed parts, stock and the details view."""
        asset = make_asset()
        wo = funcs.create_work_order(description="Remplacement du filtre à huile", asset_id=asset["id"])
        part = funcs.create_part(name="Filtre à huile", reference="FH-1", stock_qty=3, min_threshold=1)

        res = funcs.add_part_to_work_order(work_order_id=wo["id"], part_id=part["id"], quantity=2)
        assert res["res"] is True
        assert res["part"]["stock_qty"] == 1

        refused = funcs.add_part_to_work_order(work_order_id=wo["id"], part_id=part["id"], quantity=5)
        assert refused == {"res": False, "detail": "Failed to add part. Check inventory levels."}

        details = funcs.get_work_order_details(work_order_id=wo["id"])
        assert details["workOrder"]["asset"]["code"] == "CMP-001"
        assert details["parts"][0]["quantity_used"] == 2
        assert details["parts"][0]["inventory"]["stock_qty"] == 1

    def test_part_crud(self, db_engine):
        """Test part update, low stock flag and deletion."""
        part = funcs.create_part(name="Courroie", stock_qty=5, min_threshold=2, location="")
        assert part["location"] is None
        assert part["low_stock"] is False

        updated = funcs.update_part(part_id=part["id"], fields={"stock_qty": 2})
        assert updated["low_stock"] is True
        assert funcs.delete_part(part_id=part["id"]) is True
        assert funcs.update_part(part_id=part["id"], fields={"stock_qty": 1}) is None

    def test_dashboard(self, db_engine):
        """Test the dashboard counters, activity and chart."""
        asset = make_asset()
        make_asset(name="Pompe", code="PMP-001", status="down")
        funcs.create_work_order(description="Inspection annuelle du compresseur", asset_id=asset["id"])
        wo = funcs.create_work_order(description="Changement des roulements moteur", asset_id=asset["id"],
                                     status="in_progress")
        funcs.create_work_order(description="Nettoyage des filtres à air", status="closed")
        funcs.create_part(name="Filtre", stock_qty=0, min_threshold=1)
        funcs.create_part(name="Huile", stock_qty=10, min_threshold=2)

        assert funcs.get_dashboard_stats() == {
            "totalAssets": 2,
            "criticalAssets": 1,
            "openWorkOrders": 2,
            "lowStockItems": 1,
        }

        activity = funcs.get_recent_activity(limit=2)
        assert len(activity) == 2
        linked = [a for a in activity if a["id"] == wo["id"]]
        if linked:
            assert linked[0]["assets"] == {"name": "Compresseur GA37", "code": "CMP-001"}

        chart = funcs.get_work_order_status_stats()
        assert chart == [
            {"name": "Open", "value": 1, "fill": "#3b82f6"},
            {"name": "In Progress", "value": 1, "fill": "#eab308"},
            {"name": "Closed", "value": 1, "fill": "#22c55e"},
        ]


class TestScan:
    """Test get_asset_scan."""

    def test_unknown_asset(self, db_engine):
        """Test that an unknown asset yields None."""
        assert funcs.get_asset_scan(asset_id=str(uuid.uuid4())) is None

    def test_open_work_orders_only(self, db_engine):
        """Test that closed work orders are not listed."""
        asset = make_asset()
        funcs.create_work_order(description="Bruit anormal côté moteur", asset_id=asset["id"])
        funcs.create_work_order(description="Vidange effectuée la semaine dernière", asset_id=asset["id"],
                                status="closed")

        scan = funcs.get_asset_scan(asset_id=asset["id"])
        assert scan["asset"]["id"] == asset["id"]
        assert len(scan["open_work_orders"]) == 1
        assert scan["upstream"] == []
        assert scan["downstream"] == []


class TestIdentifiers:
    """Test to_uuid and the services fed with malformed ids."""

    def test_to_uuid(self):
        """Test strings, UUIDs and values that cannot be identifiers."""
        value = uuid.uuid4()
        assert to_uuid(value) is value
        assert to_uuid(str(value)) == value
        assert to_uuid(None) is None
        assert to_uuid("") is None
        assert to_uuid("not-a-uuid") is None

    def test_services_treat_malformed_ids_as_unknown(self, db_engine):
        """Test that a malformed id matches nothing, including rows with a NULL reference."""
        make_asset()
        assert funcs.get_asset(asset_id="not-a-uuid") is None
        assert funcs.get_asset_scan(asset_id="not-a-uuid") is None
        assert funcs.delete_asset(asset_id="not-a-uuid") is False
        assert funcs.list_documents(asset_id="not-a-uuid") == []
        assert funcs.delete_document(document_id="not-a-uuid") is False


@pytest.mark.parametrize("password, valid", [("abcdefg1", True), ("abcdefgh", False), ("12345678", False)])
def test_password_policy(password, valid):
    """Test the password policy: 8 characters, a letter and a digit."""
    from opengmao.crypt.passwords import PasswordManager

    assert PasswordManager().is_valid_password(password) is valid
