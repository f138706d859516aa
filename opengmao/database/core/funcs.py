"""
Service-layer operations for users, assets, aliases, documents, work orders,
inventory and the dashboard.

All functions are wrapped with the `@transactional` decorator, which manages
SQLAlchemy sessions and transactions automatically. Each function accepts (and
uses) an injected `session: Session` provided by the decorator.

Functions return plain dicts ready to be serialized by the routers. Failures
the caller must report are returned as `{"res": False, "detail": <message>}`;
missing rows are returned as `None`.
"""

from opengmao.database.helpers.transactionManagement import transactional
from opengmao.database.helpers.identifiers import to_uuid
from sqlalchemy.orm import Session
from opengmao.database.daos.user_dao import UserDao
from opengmao.database.daos.asset_dao import AssetDao
from opengmao.database.daos.alias_dao import AliasDao
from opengmao.database.daos.document_dao import DocumentDao
from opengmao.database.daos.work_order_dao import WorkOrderDao
from opengmao.database.daos.inventory_dao import InventoryDao
from opengmao.database.daos.dependency_dao import DependencyDao
from opengmao.database.entities.user import AppUser
from opengmao.database.entities.asset import Asset, EXTRACTION_FIELDS
from opengmao.database.entities.asset_alias import AssetAlias
from opengmao.database.entities.work_order import WorkOrder, WorkOrderPart
from opengmao.database.entities.inventory_part import InventoryPart
from opengmao.crypt.passwords import PasswordManager
from opengmao.database.config.config import settings
from opengmao.rag.text_utils import normalize_text, detect_language
from datetime import datetime, timezone
from typing import List, Optional
import time

STATUS_CHART = (
    ("open", "Open", "#3b82f6"),
    ("in_progress", "In Progress", "#eab308"),
    ("closed", "Closed", "#22c55e"),
)
"""Work order status → (label, colour) for the dashboard chart."""


def _user_details(user: AppUser) -> dict:
    return {
        "id": str(user.id),
        "email": user.email,
        "full_name": user.full_name,
        "role": user.role,
        "organization_id": str(user.organization_id) if user.organization_id else None,
    }


# --------------------------------------------------------------------------- #
# Users
# --------------------------------------------------------------------------- #

@transactional
def login_user(session: Session, email: str, password: str) -> dict:
    """
    Authenticate a user by email and password.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session (injected by @transactional).
    email : str
        Login email.
    password : str
        Plaintext password to verify.

    Returns
    -------
    dict
        - authenticated (bool): True if credentials are valid.
        - detail (str): Error message on failure.
        - user_details (dict | None): id, email, full_name, role, organization_id.
    """
    user_dao = UserDao()
    passwords = PasswordManager()
    users_fetched = user_dao.fetchUserByEmail(session, email.strip().lower())
    if len(users_fetched) == 0:
        return {"authenticated": False, "detail": "No user was found with that email", "user_details": None}
    user = users_fetched[0]
    if not passwords.check_password(password, user.password):
        return {"authenticated": False, "detail": "Password is wrong", "user_details": None}
    return {"authenticated": True, "detail": "", "user_details": _user_details(user)}


@transactional
def register_user(session: Session, email: str, password: str, full_name: Optional[str] = None,
                  role: str = "technician", organization_id: Optional[str] = None) -> dict:
    """
    Validate uniqueness and password policy, then create the user.

    Returns
    -------
    dict
        - On success: {'res': True, 'detail': '', 'user_details': {...}}
        - On failure: {'res': False, 'detail': <reason>}
    """
    user_dao = UserDao()
    passwords = PasswordManager()
    email = email.strip().lower()
    if len(user_dao.fetchUserByEmail(session=session, email=email)) > 0:
        return {"res": False, "detail": "Email already exists"}
    if not passwords.is_valid_password(password):
        return {
            "res": False,
            "detail": "Password is invalid. Must contain at least 8 characters, 1 letter and 1 digit.",
        }
    user = AppUser(
        email=email,
        password=passwords.hash_password(password),
        full_name=full_name,
        role=role,
        organization_id=to_uuid(organization_id),
    )
    user_dao.createUser(session=session, user=user)
    return {"res": True, "detail": "", "user_details": _user_details(user)}


@transactional
def get_user(session: Session, user_id: str) -> Optional[dict]:
    """Public details of a user, or None when the id is unknown."""
    users = UserDao().fetchUserById(session, to_uuid(user_id))
    return _user_details(users[0]) if users else None


# --------------------------------------------------------------------------- #
# Assets
# --------------------------------------------------------------------------- #

@transactional
def create_asset(session: Session, data: dict, organization_id: Optional[str] = None,
                 created_by: Optional[str] = None) -> dict:
    """
    Create an asset from a validated payload.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session (injected by @transactional).
    data : dict
        name, code, location, status and any optional asset column.
    organization_id, created_by : str, optional
        Ownership of the new asset.

    Returns
    -------
    dict
        {'res': True, 'asset': {...}} or {'res': False, 'detail': ...} when the
        code is already used.
    """
    asset_dao = AssetDao()
    fields = dict(data)
    name = fields.pop("name")
    code = fields.pop("code")
    if asset_dao.fetchAssetByCode(session, code) is not None:
        return {"res": False, "detail": "Code d'actif déjà existant"}
    if "parent_id" in fields:
        fields["parent_id"] = to_uuid(fields["parent_id"])
    asset = Asset(
        name=name,
        code=code,
        location=fields.pop("location", None) or "À définir",
        status=fields.pop("status", None) or "operational",
        organization_id=to_uuid(organization_id),
        created_by=to_uuid(created_by),
        **fields,
    )
    asset_dao.createAsset(session, asset)
    return {"res": True, "asset": asset.to_dict(with_extraction=True)}


@transactional
def get_asset(session: Session, asset_id: str, with_extraction: bool = True) -> Optional[dict]:
    asset = AssetDao().fetchAssetById(session, to_uuid(asset_id))
    return asset.to_dict(with_extraction=with_extraction) if asset else None


@transactional
def list_assets(session: Session, organization_id: Optional[str], with_extraction: bool = False) -> List[dict]:
    """Assets of an organization, newest first (extraction JSON included on request)."""
    assets = AssetDao().fetchAssetsByOrganization(session, to_uuid(organization_id))
    return [asset.to_dict(with_extraction=with_extraction) for asset in assets]


@transactional
def list_other_assets(session: Session, organization_id: Optional[str], exclude_id: str) -> List[dict]:
    """`{id, name}` of every other asset of the organization."""
    assets = AssetDao().fetchOtherAssets(session, to_uuid(organization_id), to_uuid(exclude_id))
    return [{"id": str(asset.id), "name": asset.name} for asset in assets]


@transactional
def update_asset(session: Session, asset_id: str, fields: dict) -> Optional[dict]:
    """
    Update asset columns.

    Returns
    -------
    dict | None
        Updated asset, or None if it does not exist.
    """
    updates = dict(fields)
    if "parent_id" in updates:
        updates["parent_id"] = to_uuid(updates["parent_id"])
    updates["updated_at"] = datetime.now(timezone.utc)
    asset = AssetDao().updateAsset(session, to_uuid(asset_id), updates)
    return asset.to_dict(with_extraction=True) if asset else None


@transactional
def delete_asset(session: Session, asset_id: str) -> bool:
    return AssetDao().deleteAsset(session, to_uuid(asset_id))


@transactional
def get_asset_scan(session: Session, asset_id: str) -> Optional[dict]:
    """
    What a technician sees after scanning an asset's QR code.

    Returns
    -------
    dict | None
        {'asset', 'open_work_orders', 'upstream', 'downstream'} where the
        dependency lists hold `{id, name, code, status, dependency_type,
        criticality}`; None when the asset does not exist.
    """
    asset = AssetDao().fetchAssetById(session, to_uuid(asset_id))
    if asset is None:
        return None
    dependency_dao = DependencyDao()

    def neighbour(dependency, other):
        return {
            "id": str(other.id),
            "name": other.name,
            "code": other.code,
            "status": other.status,
            "dependency_type": dependency.dependency_type,
            "criticality": dependency.criticality,
        }

    return {
        "asset": asset.to_dict(),
        "open_work_orders": [wo.to_dict() for wo in WorkOrderDao().fetchOpenWorkOrdersByAsset(session, asset.id)],
        "upstream": [neighbour(d, a) for d, a in dependency_dao.fetchUpstream(session, asset.id)],
        "downstream": [neighbour(d, a) for d, a in dependency_dao.fetchDownstream(session, asset.id)],
    }


@transactional
def bulk_import_asset(session: Session, payload: dict, organization_id: Optional[str] = None,
                      created_by: Optional[str] = None) -> dict:
    """
    Import an extracted asset with its components and spare parts.

    The main asset carries the extraction JSON; components become child assets
    and spare parts become inventory rows with zero stock.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session (injected by @transactional).
    payload : dict
        main_asset, components, spare_parts and the extraction fields.
    organization_id, created_by : str, optional
        Ownership of the created assets.

    Returns
    -------
    dict
        On success: {'res': True, 'asset_id', 'asset_name', 'qr_code_data',
        'imported_components', 'imported_parts'}.
        On duplicate code: {'res': False, 'detail': "Code d'actif déjà existant"}.
    """
    asset_dao = AssetDao()
    inventory_dao = InventoryDao()
    main_asset = payload["main_asset"]
    timestamp = int(time.time() * 1000)
    asset_code = main_asset.get("model_number") or f"AI-{timestamp}-{main_asset['name'][:3].upper()}"
    if asset_dao.fetchAssetByCode(session, asset_code) is not None:
        return {"res": False, "detail": "Code d'actif déjà existant"}

    extraction = {field: payload.get(field) for field in EXTRACTION_FIELDS if payload.get(field) is not None}
    asset = Asset(
        name=main_asset["name"],
        code=asset_code,
        location=main_asset["location"],
        status=main_asset.get("status") or "operational",
        organization_id=to_uuid(organization_id),
        created_by=to_uuid(created_by),
        manufacturer=main_asset.get("manufacturer"),
        model_number=main_asset.get("model_number"),
        serial_number=main_asset.get("serial_number"),
        category=main_asset.get("category") or "equipment",
        criticality=main_asset.get("criticality") or "medium",
        specifications=main_asset.get("specifications") or {},
        completeness_score=payload.get("completeness_score"),
        **{key: value for key, value in extraction.items() if key != "specifications"},
    )
    asset_dao.createAsset(session, asset)
    qr_code_data = f"{settings.FRONTEND_URL}/scan/{asset.id}"
    asset.image_url = qr_code_data

    spare_parts = payload.get("spare_parts") or []
    for index, part in enumerate(spare_parts):
        inventory_dao.createPart(session, InventoryPart(
            name=part.get("name") or f"Pièce {index + 1}",
            reference=f"{part.get('reference') or 'REF'}-{timestamp}-{index}",
            stock_qty=0,
            min_threshold=part.get("quantity_recommended") or 1,
            location="Magasin",
        ))

    components = payload.get("components") or []
    for index, component in enumerate(components):
        asset_dao.createAsset(session, Asset(
            name=component.get("name") or f"Composant {index + 1}",
            code=f"{asset_code}-COMP-{index + 1}",
            location=component.get("location") or main_asset["location"],
            status="operational",
            organization_id=to_uuid(organization_id),
            created_by=to_uuid(created_by),
            parent_id=asset.id,
        ))

    return {
        "res": True,
        "asset_id": str(asset.id),
        "asset_name": asset.name,
        "qr_code_data": qr_code_data,
        "imported_components": len(components),
        "imported_parts": len(spare_parts),
    }


# --------------------------------------------------------------------------- #
# Aliases
# --------------------------------------------------------------------------- #

@transactional
def add_alias(session: Session, asset_id: str, alias: str, language: Optional[str] = None,
              is_primary: bool = False) -> dict:
    """
    Attach an alias to an asset.

    Returns
    -------
    dict
        {'res': True, 'alias': {...}} or {'res': False, 'detail': ...} when the
        normalized alias already exists for the asset.
    """
    alias_dao = AliasDao()
    asset_uuid = to_uuid(asset_id)
    cleaned = alias.strip()
    normalized = normalize_text(cleaned)
    if alias_dao.fetchAliasByNormalized(session, asset_uuid, normalized) is not None:
        return {"res": False, "detail": "This alias already exists for this asset"}
    entity = AssetAlias(
        asset_id=asset_uuid,
        alias=cleaned,
        alias_normalized=normalized,
        language=language or detect_language(cleaned),
        is_primary=is_primary,
    )
    alias_dao.createAlias(session, entity)
    return {"res": True, "alias": entity.to_dict()}


@transactional
def list_aliases(session: Session, asset_id: str) -> List[dict]:
    return [alias.to_dict() for alias in AliasDao().fetchAliasesByAsset(session, to_uuid(asset_id))]


@transactional
def delete_alias(session: Session, asset_id: str, alias_id: str) -> bool:
    return AliasDao().deleteAlias(session, to_uuid(asset_id), to_uuid(alias_id))


# --------------------------------------------------------------------------- #
# Documents
# --------------------------------------------------------------------------- #

@transactional
def list_documents(session: Session, asset_id: str, include_archived: bool = False) -> List[dict]:
    """Documents of an asset, newest first; archived ones only on request."""
    documents = DocumentDao().fetchDocumentsByAsset(session, to_uuid(asset_id), include_archived=include_archived)
    return [doc.to_dict() for doc in documents]


@transactional
def get_asset_document_text(session: Session, asset_id: str, limit: int = 20) -> str:
    """The first `limit` chunks of an asset joined by blank lines."""
    chunks = DocumentDao().fetchFirstChunks(session, to_uuid(asset_id), limit)
    return "\n\n".join(chunk.content for chunk in chunks)


@transactional
def get_document(session: Session, document_id: str) -> Optional[dict]:
    """Document details with a short summary of its asset."""
    document_dao = DocumentDao()
    document = document_dao.fetchDocumentById(session, to_uuid(document_id))
    if document is None:
        return None
    data = document.to_dict()
    asset = AssetDao().fetchAssetById(session, document.asset_id) if document.asset_id else None
    data["asset"] = (
        {"id": str(asset.id), "name": asset.name, "model_number": asset.model_number,
         "manufacturer": asset.manufacturer}
        if asset else None
    )
    return data


@transactional
def update_document_types(session: Session, document_id: str, document_types: List[str]) -> Optional[dict]:
    """User-confirmed document types: confidence becomes 1.0."""
    document = DocumentDao().updateDocument(session, to_uuid(document_id), {
        "document_types": document_types,
        "user_confirmed": True,
        "classification_confidence": 1.0,
    })
    return document.to_dict() if document else None


@transactional
def delete_document(session: Session, document_id: str) -> bool:
    return DocumentDao().deleteDocument(session, to_uuid(document_id))


# --------------------------------------------------------------------------- #
# Work orders
# --------------------------------------------------------------------------- #

@transactional
def create_work_order(session: Session, description: str, priority: str = "medium", status: str = "open",
                      asset_id: Optional[str] = None, assigned_to: Optional[str] = None) -> dict:
    work_order = WorkOrder(
        description=description,
        priority=priority,
        status=status,
        asset_id=to_uuid(asset_id),
        assigned_to=assigned_to or None,
    )
    WorkOrderDao().createWorkOrder(session, work_order)
    return work_order.to_dict()


@transactional
def list_work_orders(session: Session) -> List[dict]:
    return [wo.to_dict() for wo in WorkOrderDao().fetchWorkOrders(session)]


@transactional
def update_work_order(session: Session, work_order_id: str, fields: dict) -> Optional[dict]:
    """
    Update a work order. Closing it stamps `closed_at`; reopening clears it.

    Returns
    -------
    dict | None
        Updated work order, or None if it does not exist.
    """
    updates = dict(fields)
    if "asset_id" in updates:
        updates["asset_id"] = to_uuid(updates["asset_id"])
    if "status" in updates:
        updates["closed_at"] = datetime.now(timezone.utc) if updates["status"] == "closed" else None
    work_order = WorkOrderDao().updateWorkOrder(session, to_uuid(work_order_id), updates)
    return work_order.to_dict() if work_order else None


@transactional
def update_work_order_status(session: Session, work_order_id: str, status: str) -> Optional[dict]:
    return update_work_order(work_order_id=work_order_id, fields={"status": status})


@transactional
def add_part_to_work_order(session: Session, work_order_id: str, part_id: str, quantity: int) -> dict:
    """
    Record a part consumed by a work order and decrement its stock.

    Returns
    -------
    dict
        {'res': True, ...} or {'res': False, 'detail': ...} when the work order
        or part is unknown, or stock is insufficient.
    """
    work_order_dao = WorkOrderDao()
    inventory_dao = InventoryDao()
    work_order = work_order_dao.fetchWorkOrderById(session, to_uuid(work_order_id))
    part = inventory_dao.fetchPartById(session, to_uuid(part_id))
    if work_order is None or part is None:
        return {"res": False, "detail": "Work order or part not found"}
    if part.stock_qty < quantity:
        return {"res": False, "detail": "Failed to add part. Check inventory levels."}
    part.stock_qty -= quantity
    work_order_dao.addPart(session, WorkOrderPart(work_order.id, part.id, quantity))
    return {"res": True, "part": part.to_dict(), "quantity_used": quantity}


@transactional
def get_work_order_details(session: Session, work_order_id: str) -> Optional[dict]:
    """Work order with its asset and consumed parts; None when unknown."""
    work_order_dao = WorkOrderDao()
    work_order = work_order_dao.fetchWorkOrderById(session, to_uuid(work_order_id))
    if work_order is None:
        return None
    asset = AssetDao().fetchAssetById(session, work_order.asset_id) if work_order.asset_id else None
    parts = [
        {"id": str(link.id), "quantity_used": link.quantity_used, "inventory": part.to_dict()}
        for link, part in work_order_dao.fetchParts(session, work_order.id)
    ]
    return {
        "workOrder": {**work_order.to_dict(), "asset": asset.to_dict() if asset else None},
        "parts": parts,
    }


@transactional
def delete_work_order(session: Session, work_order_id: str) -> bool:
    return WorkOrderDao().deleteWorkOrder(session, to_uuid(work_order_id))


# --------------------------------------------------------------------------- #
# Inventory
# --------------------------------------------------------------------------- #

@transactional
def create_part(session: Session, name: str, reference: Optional[str] = None, stock_qty: int = 0,
                min_threshold: int = 0, location: Optional[str] = None) -> dict:
    part = InventoryPart(name, reference, stock_qty, min_threshold, location or None)
    InventoryDao().createPart(session, part)
    return part.to_dict()


@transactional
def list_parts(session: Session) -> List[dict]:
    return [part.to_dict() for part in InventoryDao().fetchParts(session)]


@transactional
def update_part(session: Session, part_id: str, fields: dict) -> Optional[dict]:
    part = InventoryDao().updatePart(session, to_uuid(part_id), fields)
    return part.to_dict() if part else None


@transactional
def delete_part(session: Session, part_id: str) -> bool:
    return InventoryDao().deletePart(session, to_uuid(part_id))


# --------------------------------------------------------------------------- #
# Dashboard
# --------------------------------------------------------------------------- #

@transactional
def get_dashboard_stats(session: Session) -> dict:
    """
    Headline counters.

    Returns
    -------
    dict
        totalAssets, criticalAssets (status 'down'), openWorkOrders (open or
        in_progress), lowStockItems (stock at or below threshold).
    """
    by_status = WorkOrderDao().countByStatus(session)
    asset_dao = AssetDao()
    return {
        "totalAssets": asset_dao.countAssets(session),
        "criticalAssets": asset_dao.countAssets(session, status="down"),
        "openWorkOrders": by_status.get("open", 0) + by_status.get("in_progress", 0),
        "lowStockItems": InventoryDao().countLowStock(session),
    }


@transactional
def get_recent_activity(session: Session, limit: int = 5) -> List[dict]:
    """The latest work orders with their asset's name and code."""
    asset_dao = AssetDao()
    activity = []
    for work_order in WorkOrderDao().fetchWorkOrders(session, limit=limit):
        asset = asset_dao.fetchAssetById(session, work_order.asset_id) if work_order.asset_id else None
        activity.append({
            **work_order.to_dict(),
            "assets": {"name": asset.name, "code": asset.code} if asset else None,
        })
    return activity


@transactional
def get_work_order_status_stats(session: Session) -> List[dict]:
    by_status = WorkOrderDao().countByStatus(session)
    return [
        {"name": label, "value": by_status.get(status, 0), "fill": colour}
        for status, label, colour in STATUS_CHART
    ]
