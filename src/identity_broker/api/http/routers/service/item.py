"""Item API router backed by the cache-aside item service."""

from fastapi import APIRouter, Depends, Request, status

from src.identity_broker.api.http.deps import get_item_cache_service
from src.identity_broker.api.http.schemas import ApiResponse, ItemRequest, success
from src.identity_broker.core.services import ItemCacheService
from src.identity_broker.entities.service.item import Item

router = APIRouter(prefix="/api/test", tags=["items"])


@router.get("/items", response_model=ApiResponse[list[Item]])
async def list_items(
    request: Request,
    items: ItemCacheService = Depends(get_item_cache_service),
) -> ApiResponse:
    """List all items."""
    return success(request, await items.get_all())


@router.get("/items/{item_id}", response_model=ApiResponse[Item])
async def get_item(
    request: Request,
    item_id: int,
    items: ItemCacheService = Depends(get_item_cache_service),
) -> ApiResponse:
    """Get an item by ID."""
    return success(request, await items.get_by_id(item_id))


@router.post(
    "/items", response_model=ApiResponse[Item], status_code=status.HTTP_201_CREATED
)
async def create_item(
    request: Request,
    body: ItemRequest,
    items: ItemCacheService = Depends(get_item_cache_service),
) -> ApiResponse:
    """Create a new item."""
    created = await items.create(body.name, body.description)
    return success(request, created, "Item created")


@router.put("/items/{item_id}", response_model=ApiResponse[Item])
async def update_item(
    request: Request,
    item_id: int,
    body: ItemRequest,
    items: ItemCacheService = Depends(get_item_cache_service),
) -> ApiResponse:
    """Update an item."""
    updated = await items.update(item_id, body.name, body.description)
    return success(request, updated, "Item updated")


@router.delete("/items/{item_id}", response_model=ApiResponse[None])
async def delete_item(
    request: Request,
    item_id: int,
    items: ItemCacheService = Depends(get_item_cache_service),
) -> ApiResponse:
    """Delete an item."""
    await items.delete(item_id)
    return success(request, message="Item deleted")


@router.delete("/cache", response_model=ApiResponse[dict[str, int]])
async def clear_item_cache(
    request: Request,
    items: ItemCacheService = Depends(get_item_cache_service),
) -> ApiResponse:
    """Drop every cached item entry."""
    removed = await items.clear_cache()
    return success(request, {"removed": removed}, "Cache cleared")
