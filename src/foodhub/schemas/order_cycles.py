"""Pydantic schemas for order cycle administration."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class ExchangeInput(BaseModel):
    enterprise_id: int = Field(..., description="Producer (incoming) or distributor (outgoing) enterprise ID")
    pickup_time: Optional[str] = Field(None, description="Pickup time shown to customers (outgoing only)")


class OrderCycleForm(BaseModel):
    """Fields shared by create and update.

    Omitted `schedule_ids` leaves schedules untouched; an empty list detaches
    every schedule the user may edit.
    """
    name: Optional[str] = Field(None, max_length=255)
    orders_open_at: Optional[datetime] = None
    orders_close_at: Optional[datetime] = None
    schedule_ids: Optional[List[int]] = Field(None, description="Requested schedule IDs")
    incoming_exchanges: Optional[List[ExchangeInput]] = None
    outgoing_exchanges: Optional[List[ExchangeInput]] = None


class OrderCycleCreate(OrderCycleForm):
    coordinator_id: Optional[int] = Field(None, description="Coordinating enterprise ID")


class OrderCycleUpdate(OrderCycleForm):
    # Accepted for form compatibility, never applied
    coordinator_id: Optional[int] = None


class OrderCycleBulkAttributes(BaseModel):
    id: int
    name: Optional[str] = Field(None, max_length=255)
    orders_open_at: Optional[datetime] = None
    orders_close_at: Optional[datetime] = None


class OrderCycleSet(BaseModel):
    collection_attributes: Dict[str, OrderCycleBulkAttributes] = Field(default_factory=dict)


class OrderCycleBulkUpdate(BaseModel):
    order_cycle_set: Optional[OrderCycleSet] = None


class EnterpriseBrief(BaseModel):
    id: int
    name: str


class ScheduleBrief(BaseModel):
    id: int
    name: str


class ExchangeResponse(BaseModel):
    id: int
    sender_id: int
    receiver_id: int
    incoming: bool
    pickup_time: Optional[str] = None


class OrderCycleBasic(BaseModel):
    id: int
    name: str


class OrderCycleIndex(OrderCycleBasic):
    orders_open_at: Optional[datetime] = None
    orders_close_at: Optional[datetime] = None
    status: str
    coordinator: EnterpriseBrief
    schedules: List[ScheduleBrief] = Field(default_factory=list)
    viewing_as_coordinator: bool = False
    updated_at: datetime


class OrderCycleDetail(OrderCycleIndex):
    incoming_exchanges: List[ExchangeResponse] = Field(default_factory=list)
    outgoing_exchanges: List[ExchangeResponse] = Field(default_factory=list)


class OrderCycleWriteResponse(BaseModel):
    success: bool = True
    order_cycle_id: Optional[int] = None
    notice: Optional[str] = None


class NewOrderCycleResponse(BaseModel):
    """Either a ready-to-fill order cycle or a list of coordinators to pick from."""
    coordinator: Optional[EnterpriseBrief] = None
    coordinators: List[EnterpriseBrief] = Field(default_factory=list)
    error: Optional[str] = None


class NoticeResponse(BaseModel):
    notice: str
    order_cycle_id: Optional[int] = None
    task_id: Optional[str] = None
