"""
FastAPI Router — Auth • Assets • Work Orders • Inventory • Dashboard
===================================================================

Purpose
-------
Defines the HTTP API for the maintenance records:
- Authentication: login, register, logout, current user
- Assets: list, create, read, update, delete, bulk import of a reviewed AI
  extraction, QR scan lookup, dependency chain
- Work orders: list, create, read (with parts), update, status, consume parts, delete
- Inventory: list, create, update, delete
- Dashboard: headline counters, recent activity, status chart

Key Notes
---------
- Input validation via Pydantic models in `opengmao.api.models`.
- Auth cookie: `token` (JWT, subject = user id). Every `/api` route requires it.
- Service calls go through `opengmao.database.core.funcs` (keyword arguments only).
"""

from fastapi import APIRouter, Response, HTTPException, Cookie
from opengmao.api.models import (UserCredentials, UserData, AssetCreate, AssetUpdate, BulkImportPayload,
                                 WorkOrderCreate, WorkOrderUpdate, WorkOrderStatusUpdate, WorkOrderPartIn, PartData)
from opengmao.api.utils import create_access_token, verify_token, error_response
from opengmao.database.core.funcs import (
    login_user, register_user, get_user as fetch_user,
    create_asset, get_asset, list_assets, update_asset, delete_asset, get_asset_scan, bulk_import_asset,
    create_work_order, list_work_orders, update_work_order, update_work_order_status, add_part_to_work_order,
    get_work_order_details, delete_work_order,
    create_part, list_parts, update_part, delete_part,
    get_dashboard_stats, get_recent_activity, get_work_order_status_stats,
)
from opengmao.dependencies.graph import get_dependency_chain
from typing import Optional
import logging

logger = logging.getLogger("uvicorn")

router = APIRouter()
"""Creates the FastAPI router in which we define its routes"""


def current_user_id(token: Optional[str]) -> str:
    """User id carried by the `token` cookie; 401 when missing or invalid."""
    if not token:
        raise HTTPException(status_code=401, detail='Missing Token')
    user_id = verify_token(token)
    if not user_id:
        raise HTTPException(status_code=401, detail='Invalid or expired token')
    return user_id


def current_user(token: Optional[str]) -> dict:
    """Public details of the authenticated user; 401 when the account no longer exists."""
    user = fetch_user(user_id=current_user_id(token))
    if user is None:
        raise HTTPException(status_code=401, detail='Invalid or expired token')
    return user


# --------------------------------------------------------------------------- #
# Auth
# --------------------------------------------------------------------------- #

@router.post('/login')
async def login(data: UserCredentials, response: Response):
    """Authenticate a user and set a signed JWT cookie.

    Request body:
        UserCredentials {email, password}

    Behavior:
        - Verifies credentials via `login_user`.
        - On success, creates a JWT whose subject is the user id and sets it
          as an HttpOnly cookie `token`.
        - Returns user details; on failure, 401.
    """
    auth = login_user(email=data.email, password=data.password)
    if auth['authenticated']:
        access_token = create_access_token({'sub': auth['user_details']['id']})
        response.set_cookie(
            key="token",
            value=access_token,
            httponly=True,
            secure=False,  # True in production
            samesite="lax"
        )
        return {'user_details': auth['user_details']}
    else:
        raise HTTPException(status_code=401, detail=auth['detail'])


@router.post('/register')
async def register(data: UserData):
    """Register a new user account.

    Returns the created user's details; 400 with detail when the email is
    taken or the password too weak.
    """
    res = register_user(email=data.email, password=data.password, full_name=data.full_name,
                        role=data.role, organization_id=data.organization_id)
    if res['res']:
        return {'user_details': res['user_details']}
    else:
        raise HTTPException(status_code=400, detail=res['detail'])


@router.post('/logout')
async def logout(response: Response):
    """Logout by clearing the auth cookie `token`."""
    response.delete_cookie(key="token")
    return True


@router.get('/get_user')
def get_user(token: str = Cookie(None)):
    """Decode the JWT cookie and return the current user's profile."""
    return current_user(token)


# --------------------------------------------------------------------------- #
# Assets
# --------------------------------------------------------------------------- #

@router.get('/api/assets')
def assets_list(token: str = Cookie(None)):
    """Assets of the user's organization, newest first."""
    user = current_user(token)
    return list_assets(organization_id=user['organization_id'])


@router.post('/api/assets', status_code=201)
def assets_create(data: AssetCreate, token: str = Cookie(None)):
    user = current_user(token)
    res = create_asset(data=data.model_dump(exclude_none=True), organization_id=user['organization_id'],
                       created_by=user['id'])
    if not res['res']:
        raise HTTPException(status_code=409, detail=res['detail'])
    return res['asset']


@router.post('/api/assets/bulk-import')
def assets_bulk_import(data: BulkImportPayload, token: str = Cookie(None)):
    """Create an asset, its components and its spare parts from a reviewed extraction.

    Response:
        200: {success, asset_id, asset_name, qr_code_data, imported_components, imported_parts}
        400: invalid main asset or missing location
        409: asset code already used
    """
    if not token or not verify_token(token):
        return error_response(401, 'Non autorisé', success=False)
    user = current_user(token)
    if not data.main_asset or not data.main_asset.get('name'):
        return error_response(400, "Données d'actif invalides", success=False)
    if not data.main_asset.get('location'):
        return error_response(400, "L'emplacement de l'actif est requis", success=False)

    res = bulk_import_asset(payload=data.model_dump(), organization_id=user['organization_id'],
                            created_by=user['id'])
    if not res['res']:
        return error_response(409, res['detail'], success=False)
    logger.info(f"📦 [Bulk Import] Import completed successfully for asset {res['asset_id']}")
    return {
        'success': True,
        'asset_id': res['asset_id'],
        'asset_name': res['asset_name'],
        'qr_code_data': res['qr_code_data'],
        'imported_components': res['imported_components'],
        'imported_parts': res['imported_parts'],
    }


@router.get('/api/scan/{asset_id}')
def asset_scan(asset_id: str, token: str = Cookie(None)):
    """What the QR code of an asset opens: summary, open work orders and dependencies."""
    current_user_id(token)
    scan = get_asset_scan(asset_id=asset_id)
    if scan is None:
        raise HTTPException(status_code=404, detail='Asset not found')
    return scan


@router.get('/api/assets/{asset_id}')
def assets_get(asset_id: str, token: str = Cookie(None)):
    current_user_id(token)
    asset = get_asset(asset_id=asset_id, with_extraction=True)
    if asset is None:
        raise HTTPException(status_code=404, detail='Asset not found')
    return asset


@router.patch('/api/assets/{asset_id}')
def assets_update(asset_id: str, data: AssetUpdate, token: str = Cookie(None)):
    current_user_id(token)
    asset = update_asset(asset_id=asset_id, fields=data.model_dump(exclude_unset=True))
    if asset is None:
        raise HTTPException(status_code=404, detail='Asset not found')
    return asset


@router.delete('/api/assets/{asset_id}')
def assets_delete(asset_id: str, token: str = Cookie(None)):
    current_user_id(token)
    if not delete_asset(asset_id=asset_id):
        raise HTTPException(status_code=404, detail='Asset not found')
    return {'success': True}


@router.get('/api/assets/{asset_id}/dependencies')
def assets_dependencies(asset_id: str, max_depth: int = 3, token: str = Cookie(None)):
    """Upstream and downstream dependency chain of an asset."""
    current_user_id(token)
    return get_dependency_chain(asset_id=asset_id, max_depth=max_depth)


# --------------------------------------------------------------------------- #
# Work orders
# --------------------------------------------------------------------------- #

@router.get('/api/work-orders')
def work_orders_list(token: str = Cookie(None)):
    current_user_id(token)
    return list_work_orders()


@router.post('/api/work-orders', status_code=201)
def work_orders_create(data: WorkOrderCreate, token: str = Cookie(None)):
    current_user_id(token)
    return create_work_order(description=data.description, priority=data.priority, status=data.status,
                             asset_id=data.asset_id, assigned_to=data.assigned_to)


@router.get('/api/work-orders/{work_order_id}')
def work_orders_get(work_order_id: str, token: str = Cookie(None)):
    """Work order with its asset and consumed parts."""
    current_user_id(token)
    details = get_work_order_details(work_order_id=work_order_id)
    if details is None:
        raise HTTPException(status_code=404, detail='Work order not found')
    return details


@router.patch('/api/work-orders/{work_order_id}')
def work_orders_update(work_order_id: str, data: WorkOrderUpdate, token: str = Cookie(None)):
    current_user_id(token)
    work_order = update_work_order(work_order_id=work_order_id, fields=data.model_dump(exclude_unset=True))
    if work_order is None:
        raise HTTPException(status_code=404, detail='Work order not found')
    return work_order


@router.patch('/api/work-orders/{work_order_id}/status')
def work_orders_status(work_order_id: str, data: WorkOrderStatusUpdate, token: str = Cookie(None)):
    """Change the status; closing stamps `closed_at`."""
    current_user_id(token)
    work_order = update_work_order_status(work_order_id=work_order_id, status=data.status)
    if work_order is None:
        raise HTTPException(status_code=404, detail='Work order not found')
    return work_order


@router.post('/api/work-orders/{work_order_id}/parts')
def work_orders_add_part(work_order_id: str, data: WorkOrderPartIn, token: str = Cookie(None)):
    """Record a consumed part; the stock is decremented."""
    current_user_id(token)
    res = add_part_to_work_order(work_order_id=work_order_id, part_id=data.part_id, quantity=data.quantity)
    if not res['res']:
        raise HTTPException(status_code=400, detail=res['detail'])
    return {'success': True, 'part': res['part'], 'quantity_used': res['quantity_used']}


@router.delete('/api/work-orders/{work_order_id}')
def work_orders_delete(work_order_id: str, token: str = Cookie(None)):
    current_user_id(token)
    if not delete_work_order(work_order_id=work_order_id):
        raise HTTPException(status_code=404, detail='Work order not found')
    return {'success': True}


# --------------------------------------------------------------------------- #
# Inventory
# --------------------------------------------------------------------------- #

def check_part_quantities(data: PartData):
    if data.stock_qty < 0 or data.min_threshold < 0:
        raise HTTPException(status_code=400, detail='Stock quantity and minimum threshold must be non-negative')


@router.get('/api/inventory')
def inventory_list(token: str = Cookie(None)):
    current_user_id(token)
    return list_parts()


@router.post('/api/inventory', status_code=201)
def inventory_create(data: PartData, token: str = Cookie(None)):
    current_user_id(token)
    check_part_quantities(data)
    return create_part(name=data.name, reference=data.reference, stock_qty=data.stock_qty,
                       min_threshold=data.min_threshold, location=data.location)


@router.put('/api/inventory/{part_id}')
def inventory_update(part_id: str, data: PartData, token: str = Cookie(None)):
    current_user_id(token)
    check_part_quantities(data)
    fields = data.model_dump()
    fields['location'] = fields['location'] or None
    part = update_part(part_id=part_id, fields=fields)
    if part is None:
        raise HTTPException(status_code=404, detail='Part not found')
    return part


@router.delete('/api/inventory/{part_id}')
def inventory_delete(part_id: str, token: str = Cookie(None)):
    current_user_id(token)
    if not delete_part(part_id=part_id):
        raise HTTPException(status_code=404, detail='Part not found')
    return {'success': True}


# --------------------------------------------------------------------------- #
# Dashboard
# --------------------------------------------------------------------------- #

@router.get('/api/dashboard/stats')
def dashboard_stats(token: str = Cookie(None)):
    current_user_id(token)
    return get_dashboard_stats()


@router.get('/api/dashboard/activity')
def dashboard_activity(limit: int = 5, token: str = Cookie(None)):
    current_user_id(token)
    return get_recent_activity(limit=limit)


@router.get('/api/dashboard/work-order-status')
def dashboard_work_order_status(token: str = Cookie(None)):
    current_user_id(token)
    return get_work_order_status_stats()
