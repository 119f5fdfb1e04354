"""Store, Shopify install and webhook API controllers."""

import base64
import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Header, Path, Query, Request, status
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.dependencies import get_db, verify_shopify_webhook
from app.domains.store.service import StoreService
from app.domains.store.shopify import ShopifyClient, build_auth_url, normalize_shop_domain
from app.domains.store.sync import StoreSyncService, product_row
from app.exceptions.base import ValidationError
from app.exceptions.store import ShopifyAPIError
from app.schemas.base import ResponseSchema
from app.schemas.store import StoreCreate, StoreResponse, WidgetSettingsUpdate
from app.tasks.sync_tasks import sync_store_task


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/stores", tags=["stores"])
auth_router = APIRouter(prefix="/api/auth/shopify", tags=["shopify-auth"])
webhook_router = APIRouter(
    prefix="/api/webhooks",
    tags=["webhooks"],
    dependencies=[Depends(verify_shopify_webhook)],
)

INSTALL_STEPS = [
    "Copy the script tag above",
    "Go to your Shopify admin > Online Store > Themes",
    "Click 'Actions' > 'Edit code' on your active theme",
    "Open the 'theme.liquid' file",
    "Paste the script tag before the closing </body> tag",
    "Save the file",
    "Visit your storefront to see the chat widget",
]


@router.post("/", response_model=ResponseSchema, status_code=201)
async def create_store(
    _request: Request,
    store_data: StoreCreate = Body(...),
    db: AsyncSession = Depends(get_db),
):
    """Register a store directly with an existing access token."""
    service = StoreService(db)
    store = await service.create_store(store_data)

    return ResponseSchema(
        status="success",
        message="Store created successfully",
        data=StoreResponse.model_validate(store).model_dump(mode="json"),
    )


@router.get("/{store_id}", response_model=ResponseSchema)
async def get_store(
    _request: Request,
    store_id: UUID = Path(..., description="Store ID"),
    db: AsyncSession = Depends(get_db),
):
    service = StoreService(db)
    store = await service.get_store(store_id)

    return ResponseSchema(
        status="success",
        message="Store retrieved successfully",
        data=StoreResponse.model_validate(store).model_dump(mode="json"),
    )


@router.post("/{store_id}/sync", response_model=ResponseSchema, status_code=202)
async def sync_store(
    _request: Request,
    store_id: UUID = Path(..., description="Store ID"),
    db: AsyncSession = Depends(get_db),
):
    """Queue a catalog sync, or run it in-process when no worker is reachable."""
    service = StoreService(db)
    await service.get_store(store_id)

    try:
        task = sync_store_task.apply_async(args=[str(store_id)], retry=False)
        return ResponseSchema(
            status="success",
            message="Store sync queued",
            data={"task_id": task.id, "queued": True},
        )
    except Exception as e:
        logger.warning(f"Could not queue sync for store {store_id}, running inline: {str(e)}")

    try:
        result = await StoreSyncService(db).sync_store_by_id(store_id)
    except ShopifyAPIError as e:
        logger.error(f"Inline sync for store {store_id} failed: {e.message}")
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content=ResponseSchema(
                status="error",
                message="Store sync failed",
                data={"error": e.message},
            ).model_dump(),
        )

    return ResponseSchema(
        status="success",
        message="Store synced successfully",
        data={"queued": False, **result.model_dump(mode="json")},
    )


@router.get("/{store_id}/sync-status", response_model=ResponseSchema)
async def get_sync_status(
    _request: Request,
    store_id: UUID = Path(..., description="Store ID"),
    db: AsyncSession = Depends(get_db),
):
    service = StoreService(db)
    sync_status = await service.get_sync_status(store_id)

    return ResponseSchema(
        status="success",
        message="Sync status retrieved successfully",
        data=sync_status.model_dump(mode="json"),
    )


@router.put("/{store_id}/widget-settings", response_model=ResponseSchema)
async def update_widget_settings(
    _request: Request,
    store_id: UUID = Path(..., description="Store ID"),
    widget_settings: WidgetSettingsUpdate = Body(...),
    db: AsyncSession = Depends(get_db),
):
    service = StoreService(db)
    store = await service.update_widget_settings(store_id, widget_settings)

    return ResponseSchema(
        status="success",
        message="Widget settings updated successfully",
        data=StoreResponse.model_validate(store).model_dump(mode="json"),
    )


@router.get("/{store_id}/widget/install-instructions", response_model=ResponseSchema)
async def get_install_instructions(
    request: Request,
    store_id: UUID = Path(..., description="Store ID"),
    db: AsyncSession = Depends(get_db),
):
    """Script tag and steps for adding the chat widget to a theme."""
    service = StoreService(db)
    store = await service.get_store(store_id)

    base_url = (settings.app_url or str(request.base_url)).rstrip("/")
    store_settings = store.settings or {}
    widget_url = f"{base_url}/widget/{store.id}.js"

    return ResponseSchema(
        status="success",
        message="Install instructions retrieved successfully",
        data={
            "script_tag": f'<script src="{widget_url}" async></script>',
            "instructions": INSTALL_STEPS,
            "widget": {
                "color": store_settings.get("widget_color", settings.widget_color),
                "position": store_settings.get("widget_position", settings.widget_position.value),
                "websocket_url": base_url.replace("http", "ws", 1) + "/ws",
            },
        },
    )


@auth_router.get("")
async def start_install(shop: str = Query(..., min_length=1, description="Shop domain")):
    """Redirect the merchant to Shopify's OAuth consent screen."""
    return RedirectResponse(build_auth_url(shop))


@auth_router.get("/callback")
async def install_callback(
    code: str = Query(..., min_length=1),
    shop: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_db),
):
    """Finish the OAuth install: store the token, pull the catalog, return to the admin."""
    domain = normalize_shop_domain(shop)

    async with ShopifyClient(domain) as client:
        access_token = await client.exchange_code_for_token(code)
        shop_data = await client.get_shop()

    service = StoreService(db)
    store = await service.install_store(
        shopify_domain=domain,
        shopify_store_id=str(shop_data["id"]),
        store_name=shop_data.get("name") or domain,
        access_token=access_token,
        settings={
            "timezone": shop_data.get("timezone"),
            "currency": shop_data.get("currency"),
            "domain": shop_data.get("domain"),
        },
    )

    try:
        await StoreSyncService(db).sync_store(store)
    except ShopifyAPIError as e:
        # The store is installed; the scheduled sync will retry.
        logger.error(f"Initial sync for {domain} failed: {e.message}")

    host = base64.b64encode(f"{domain}.myshopify.com".encode()).decode()
    return RedirectResponse(
        f"https://{domain}.myshopify.com/admin/apps/{settings.shopify_app_handle}"
        f"?shop={domain}&host={host}"
    )


@webhook_router.post("/app/uninstalled")
async def app_uninstalled(
    payload: dict[str, Any] | None = Body(None),
    x_shopify_shop_domain: str | None = Header(None),
    db: AsyncSession = Depends(get_db),
):
    payload = payload or {}
    domain = payload.get("domain") or payload.get("myshopify_domain") or x_shopify_shop_domain
    if not domain:
        raise ValidationError("Shop domain is required")

    await StoreService(db).deactivate_store(domain)
    return {"message": "App uninstalled successfully"}


@webhook_router.post("/products/create")
async def product_created(
    payload: dict[str, Any] = Body(...),
    x_shopify_shop_domain: str | None = Header(None),
    db: AsyncSession = Depends(get_db),
):
    if not x_shopify_shop_domain or "id" not in payload:
        raise ValidationError("Shop domain header and product id are required")

    service = StoreService(db)
    store = await service.get_store_by_domain(x_shopify_shop_domain)
    if store is None:
        logger.warning(f"Product webhook for unknown store {x_shopify_shop_domain}")
        return {"message": "Store not installed"}

    await service.upsert_products(store.id, [product_row(payload)])
    return {"message": "Product created successfully"}
