"""Order routes.

Routes:
- POST   /api/orders                    - Create an order
- GET    /api/orders                    - List orders (admins: all, customers: own)
- GET    /api/orders/mine               - List the caller's orders
- GET    /api/orders/number/{order_no}  - Get an order by its number
- GET    /api/orders/{order_id}         - Get an order
- PUT    /api/orders/{order_id}         - Edit an order
- PATCH  /api/orders/{order_id}/status  - Change status (admin)
- POST   /api/orders/{order_id}/cancel  - Cancel an order
- DELETE /api/orders/{order_id}         - Delete an order and its files (admin)
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from stitchdesk.attachments import FileStorage
from stitchdesk.models import Actor, OrderCreate, OrderStatus, OrderUpdate, ServiceType
from stitchdesk.orders import (
    OrderFilters,
    OrderPage,
    cancel_order,
    create_order,
    delete_order,
    get_order,
    get_order_by_number,
    list_my_orders,
    list_orders,
    update_order,
    update_order_status,
)
from stitchdesk.symbols import SymbolResolver
from stitchdesk.web.dependencies import get_actor, get_db, get_storage, get_symbols
from stitchdesk.web.models import OrderOut, OrderStatusChange, success

router = APIRouter(prefix="/api/orders", tags=["orders"])


def _order_filters(
    user_id: int | None = None,
    order_type: ServiceType | None = None,
    status: OrderStatus | None = None,
    exclude_status: list[OrderStatus] = Query(default=[]),
    is_urgent: bool | None = None,
    search: str | None = None,
    from_date: datetime | None = None,
    to_date: datetime | None = None,
    limit: int = Query(default=10, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
) -> OrderFilters:
    return OrderFilters(
        user_id=user_id,
        order_type=order_type,
        status=status,
        exclude_statuses=exclude_status,
        is_urgent=is_urgent,
        search=search,
        from_date=from_date,
        to_date=to_date,
        limit=limit,
        offset=offset,
    )


def _page(page: OrderPage) -> dict:
    return success(
        [OrderOut.model_validate(o) for o in page.orders],
        total=page.total,
        limit=page.limit,
        offset=page.offset,
    )


@router.post("", status_code=status.HTTP_201_CREATED)
async def create(
    payload: OrderCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    symbols: SymbolResolver = Depends(get_symbols),
):
    order = await create_order(db, symbols, actor, payload)
    return success(OrderOut.model_validate(order), "Order created successfully")


@router.get("")
async def list_all(
    filters: OrderFilters = Depends(_order_filters),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    symbols: SymbolResolver = Depends(get_symbols),
):
    return _page(await list_orders(db, symbols, actor, filters))


@router.get("/mine")
async def list_mine(
    filters: OrderFilters = Depends(_order_filters),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    symbols: SymbolResolver = Depends(get_symbols),
):
    return _page(await list_my_orders(db, symbols, actor, filters))


@router.get("/number/{order_no}")
async def read_by_number(
    order_no: str,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    symbols: SymbolResolver = Depends(get_symbols),
):
    order = await get_order_by_number(db, symbols, actor, order_no)
    return success(OrderOut.model_validate(order))


@router.get("/{order_id}")
async def read(
    order_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    symbols: SymbolResolver = Depends(get_symbols),
):
    order = await get_order(db, symbols, actor, order_id)
    return success(OrderOut.model_validate(order))


@router.put("/{order_id}")
async def update(
    order_id: int,
    payload: OrderUpdate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    symbols: SymbolResolver = Depends(get_symbols),
):
    order = await update_order(db, symbols, actor, order_id, payload)
    return success(OrderOut.model_validate(order), "Order updated successfully")


@router.patch("/{order_id}/status")
async def change_status(
    order_id: int,
    body: OrderStatusChange,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    symbols: SymbolResolver = Depends(get_symbols),
):
    order = await update_order_status(db, symbols, actor, order_id, body.status)
    return success(OrderOut.model_validate(order), "Order status updated successfully")


@router.post("/{order_id}/cancel")
async def cancel(
    order_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    symbols: SymbolResolver = Depends(get_symbols),
):
    order = await cancel_order(db, symbols, actor, order_id)
    return success(OrderOut.model_validate(order), "Order cancelled successfully")


@router.delete("/{order_id}")
async def delete(
    order_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    symbols: SymbolResolver = Depends(get_symbols),
    storage: FileStorage = Depends(get_storage),
):
    await delete_order(db, symbols, storage, actor, order_id)
    return success(None, "Order deleted successfully")
