"""Admin order cycles router with coordinator/participant permission checks."""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from fastapi.responses import JSONResponse

from foodhub import settings
from foodhub.db_order_cycles import OrderCycleScope, get_exchanges, list_order_cycles
from foodhub.db_schedules import get_schedules_for_order_cycles
from foodhub.deps import get_accessible_order_cycle, get_permissions, require_coordinator_manager
from foodhub.permissions import Permissions
from foodhub.schemas.order_cycles import (
    EnterpriseBrief,
    ExchangeResponse,
    NewOrderCycleResponse,
    NoticeResponse,
    OrderCycleBasic,
    OrderCycleBulkUpdate,
    OrderCycleCreate,
    OrderCycleDetail,
    OrderCycleIndex,
    OrderCycleUpdate,
    OrderCycleWriteResponse,
    ScheduleBrief,
)
from foodhub.services.order_cycles import DestroyResult, destroy_order_cycle, order_cycle_status, sort_into_brackets
from foodhub.services.order_cycles.service import (
    CoordinatorNotPermitted,
    OrderCycleValidationError,
    bulk_update_order_cycles,
    clone_order_cycle,
    create_order_cycle,
    update_order_cycle,
)
from foodhub.tasks.order_cycles import notify_producers_task
from foodhub.utils.timestamps import now_utc

router = APIRouter(prefix="/api/v1/admin/order_cycles", tags=["order-cycles"])

logger = logging.getLogger(__name__)

CREATE_NOTICE = "Your order cycle has been created."
UPDATE_NOTICE = "Your order cycle has been updated."
CLONE_NOTICE = "Your order cycle {name} has been cloned."
NOTIFY_PRODUCERS_NOTICE = "Emails to be sent to producers have been queued for sending."
NO_PERMISSION_TO_COORDINATE = "None of your enterprises have permission to coordinate an order cycle"
NO_PERMISSION_TO_CREATE = "You don't have permission to create an order cycle coordinated by that enterprise"
SCHEDULE_PRESENT_ERROR = (
    "That order cycle is linked to a schedule and cannot be deleted. "
    "Please unlink or delete the schedule first."
)
ORDERS_PRESENT_ERROR = (
    "That order cycle has been selected by a customer and cannot be deleted. "
    "To prevent customers from accessing it, please close it instead."
)
BULK_UPDATE_NO_DATA = "Hm, something went wrong. No order cycle data found."

SERIALIZER_PREFIXES = ("basic", "index")

FORM_FIELDS = {"name", "orders_open_at", "orders_close_at", "coordinator_id"}

AS_SCOPES = {
    "distributor": OrderCycleScope.DISTRIBUTOR,
    "producer": OrderCycleScope.PRODUCER,
}


def _serialize(order_cycles: List[dict], prefix: str, permissions: Permissions, now: datetime) -> list:
    """Render order cycles with the basic, index or detail serializer."""
    if prefix == "basic":
        return [OrderCycleBasic(id=oc["id"], name=oc["name"]) for oc in order_cycles]

    ids = [oc["id"] for oc in order_cycles]
    schedules = get_schedules_for_order_cycles(ids)
    exchanges = get_exchanges(ids) if prefix == "detail" else {}

    result = []
    for oc in order_cycles:
        data = dict(
            id=oc["id"],
            name=oc["name"],
            orders_open_at=oc["orders_open_at"],
            orders_close_at=oc["orders_close_at"],
            status=order_cycle_status(oc, now),
            coordinator=EnterpriseBrief(id=oc["coordinator_id"], name=oc["coordinator_name"]),
            schedules=[ScheduleBrief(**s) for s in schedules.get(oc["id"], [])],
            viewing_as_coordinator=permissions.manages(oc["coordinator_id"]),
            updated_at=oc["updated_at"],
        )
        if prefix == "detail":
            oc_exchanges = exchanges.get(oc["id"], [])
            result.append(OrderCycleDetail(
                **data,
                incoming_exchanges=[ExchangeResponse(**e) for e in oc_exchanges if e["incoming"]],
                outgoing_exchanges=[ExchangeResponse(**e) for e in oc_exchanges if not e["incoming"]],
            ))
        else:
            result.append(OrderCycleIndex(**data))
    return result


def _brief(enterprise: dict) -> dict:
    return {"id": enterprise["id"], "name": enterprise["name"]}


def _exchange_dicts(exchanges) -> Optional[List[dict]]:
    if exchanges is None:
        return None
    return [e.model_dump() for e in exchanges]


def _validation_failed(e: OrderCycleValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"errors": e.messages},
    )


@router.get("")
async def list_order_cycles_endpoint(
    as_: Optional[str] = Query(None, alias="as", description="distributor or producer"),
    name: Optional[str] = Query(None, description="Name contains (case-insensitive)"),
    orders_close_at_gt: Optional[datetime] = Query(None, description="Only order cycles closing after this"),
    ams_prefix: Optional[str] = Query(None, description="Serializer: basic or index"),
    permissions: Permissions = Depends(get_permissions),
):
    """List order cycles the user can see: undated, open, upcoming, then closed.

    Closed order cycles older than ORDER_CYCLES_RECENT_DAYS are left out
    unless `orders_close_at_gt` asks for an earlier cut-off.
    """
    now = now_utc()
    closes_after = orders_close_at_gt or now - timedelta(days=settings.ORDER_CYCLES_RECENT_DAYS)
    order_cycles = list_order_cycles(
        permissions.managed_enterprise_ids(),
        scope=AS_SCOPES.get(as_, OrderCycleScope.ACCESSIBLE),
        name_contains=name,
        closes_after=closes_after,
    )
    prefix = ams_prefix if ams_prefix in SERIALIZER_PREFIXES else "index"
    return _serialize(sort_into_brackets(order_cycles, now), prefix, permissions, now)


@router.get("/new", response_model=NewOrderCycleResponse)
async def new_order_cycle(
    coordinator_id: Optional[int] = Query(None, description="Preferred coordinator"),
    permissions: Permissions = Depends(get_permissions),
):
    """Pick the coordinator for a new order cycle.

    Returns the coordinator when it is settled, or the list to choose from.
    """
    coordinators = permissions.permitted_coordinating_enterprises()
    by_id = {e["id"]: e for e in coordinators}

    if coordinator_id is not None and coordinator_id in by_id:
        return NewOrderCycleResponse(coordinator=EnterpriseBrief(**_brief(by_id[coordinator_id])))

    if not coordinators:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=NO_PERMISSION_TO_COORDINATE,
        )
    if len(coordinators) == 1:
        return NewOrderCycleResponse(coordinator=EnterpriseBrief(**_brief(coordinators[0])))

    return NewOrderCycleResponse(
        coordinators=[EnterpriseBrief(**_brief(e)) for e in coordinators],
        error=NO_PERMISSION_TO_CREATE if coordinator_id is not None else None,
    )


@router.post("", response_model=OrderCycleWriteResponse, status_code=status.HTTP_201_CREATED)
async def create_order_cycle_endpoint(
    body: OrderCycleCreate,
    permissions: Permissions = Depends(get_permissions),
):
    """Create an order cycle coordinated by one of the user's enterprises."""
    fields = body.model_dump(exclude_unset=True, include=FORM_FIELDS)
    try:
        order_cycle = create_order_cycle(
            fields,
            permissions,
            schedule_ids=body.schedule_ids,
            incoming_exchanges=_exchange_dicts(body.incoming_exchanges),
            outgoing_exchanges=_exchange_dicts(body.outgoing_exchanges),
        )
    except CoordinatorNotPermitted:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=NO_PERMISSION_TO_CREATE,
        )
    except OrderCycleValidationError as e:
        return _validation_failed(e)

    return OrderCycleWriteResponse(success=True, order_cycle_id=order_cycle["id"], notice=CREATE_NOTICE)


@router.put("/bulk_update")
async def bulk_update_order_cycles_endpoint(
    body: OrderCycleBulkUpdate,
    permissions: Permissions = Depends(get_permissions),
):
    """Update name and dates of several order cycles the user coordinates."""
    if body.order_cycle_set is None:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"errors": BULK_UPDATE_NO_DATA},
        )

    collection = {
        key: attrs.model_dump(exclude_unset=True)
        for key, attrs in body.order_cycle_set.collection_attributes.items()
    }
    try:
        order_cycles = bulk_update_order_cycles(collection, permissions)
    except OrderCycleValidationError as e:
        return _validation_failed(e)

    now = now_utc()
    return _serialize(sort_into_brackets(order_cycles, now), "index", permissions, now)


@router.get("/{order_cycle_id}", response_model=OrderCycleDetail)
async def get_order_cycle_detail(
    order_cycle: dict = Depends(get_accessible_order_cycle),
    permissions: Permissions = Depends(get_permissions),
):
    """Get order cycle details. Requires access to the order cycle."""
    return _serialize([order_cycle], "detail", permissions, now_utc())[0]


@router.put("/{order_cycle_id}", response_model=OrderCycleWriteResponse)
async def update_order_cycle_endpoint(
    body: OrderCycleUpdate,
    reloading: Optional[str] = Query(None, description="'1' when the form reloads after saving"),
    order_cycle: dict = Depends(get_accessible_order_cycle),
    permissions: Permissions = Depends(get_permissions),
):
    """Update an order cycle.

    Name and dates only change for managers of the coordinator; the
    coordinator itself never changes.
    """
    fields = body.model_dump(exclude_unset=True, include=FORM_FIELDS)
    try:
        update_order_cycle(
            order_cycle,
            fields,
            permissions,
            schedule_ids=body.schedule_ids,
            incoming_exchanges=_exchange_dicts(body.incoming_exchanges),
            outgoing_exchanges=_exchange_dicts(body.outgoing_exchanges),
        )
    except OrderCycleValidationError as e:
        return _validation_failed(e)

    return OrderCycleWriteResponse(
        success=True,
        order_cycle_id=order_cycle["id"],
        notice=UPDATE_NOTICE if reloading == "1" else None,
    )


@router.post("/{order_cycle_id}/clone", response_model=NoticeResponse, status_code=status.HTTP_201_CREATED)
async def clone_order_cycle_endpoint(
    order_cycle: dict = Depends(require_coordinator_manager),
):
    """Clone an order cycle. Requires managing the coordinator."""
    clone = clone_order_cycle(order_cycle)
    return NoticeResponse(
        notice=CLONE_NOTICE.format(name=order_cycle["name"]),
        order_cycle_id=clone["id"],
    )


@router.post(
    "/{order_cycle_id}/notify_producers",
    response_model=NoticeResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def notify_producers_endpoint(
    order_cycle: dict = Depends(require_coordinator_manager),
):
    """Queue notification emails to every producer in the order cycle."""
    result = notify_producers_task.delay(order_cycle["id"])
    return NoticeResponse(
        notice=NOTIFY_PRODUCERS_NOTICE,
        order_cycle_id=order_cycle["id"],
        task_id=result.id,
    )


@router.delete("/{order_cycle_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_order_cycle_endpoint(
    order_cycle: dict = Depends(require_coordinator_manager),
):
    """Delete an order cycle that no schedule or order depends on."""
    result = destroy_order_cycle(order_cycle["id"])
    if result is DestroyResult.SCHEDULES_PRESENT:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=SCHEDULE_PRESENT_ERROR)
    if result is DestroyResult.ORDERS_PRESENT:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=ORDERS_PRESENT_ERROR)
    if result is DestroyResult.NOT_FOUND:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order cycle not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
