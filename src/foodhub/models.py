from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.sql import func
from .db import Base


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True)
    username = Column(String(64), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True)
    hashed_password = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    is_superuser = Column(Boolean, nullable=False, default=False)
    last_login_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Enterprise(Base):
    __tablename__ = "enterprises"
    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    is_primary_producer = Column(Boolean, nullable=False, default=False)
    # none | own | any
    sells = Column(String(16), nullable=False, default="none")


class EnterpriseRole(Base):
    __tablename__ = "enterprise_roles"
    __table_args__ = (UniqueConstraint("user_id", "enterprise_id", name="enterprise_roles_user_enterprise_unique"),)
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    enterprise_id = Column(Integer, ForeignKey("enterprises.id", ondelete="CASCADE"), nullable=False, index=True)


class OrderCycle(Base):
    __tablename__ = "order_cycles"
    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    orders_open_at = Column(DateTime(timezone=True))
    orders_close_at = Column(DateTime(timezone=True), index=True)
    coordinator_id = Column(Integer, ForeignKey("enterprises.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Exchange(Base):
    __tablename__ = "exchanges"
    id = Column(Integer, primary_key=True)
    order_cycle_id = Column(Integer, ForeignKey("order_cycles.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = Column(Integer, ForeignKey("enterprises.id"), nullable=False)
    receiver_id = Column(Integer, ForeignKey("enterprises.id"), nullable=False)
    incoming = Column(Boolean, nullable=False, default=False)
    pickup_time = Column(String(255))


class Schedule(Base):
    __tablename__ = "schedules"
    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)


class OrderCycleSchedule(Base):
    __tablename__ = "order_cycle_schedules"
    __table_args__ = (UniqueConstraint("order_cycle_id", "schedule_id", name="order_cycle_schedules_unique"),)
    id = Column(Integer, primary_key=True)
    order_cycle_id = Column(Integer, ForeignKey("order_cycles.id"), nullable=False, index=True)
    schedule_id = Column(Integer, ForeignKey("schedules.id", ondelete="CASCADE"), nullable=False, index=True)


class Subscription(Base):
    __tablename__ = "subscriptions"
    id = Column(Integer, primary_key=True)
    schedule_id = Column(Integer, ForeignKey("schedules.id"), nullable=False, index=True)
    shop_id = Column(Integer, ForeignKey("enterprises.id"), nullable=False)
    customer_id = Column(Integer)
    begins_at = Column(DateTime(timezone=True), nullable=False)
    ends_at = Column(DateTime(timezone=True))
    canceled_at = Column(DateTime(timezone=True))


class ProxyOrder(Base):
    __tablename__ = "proxy_orders"
    __table_args__ = (UniqueConstraint("subscription_id", "order_cycle_id", name="proxy_orders_subscription_oc_unique"),)
    id = Column(Integer, primary_key=True)
    subscription_id = Column(Integer, ForeignKey("subscriptions.id", ondelete="CASCADE"), nullable=False, index=True)
    order_cycle_id = Column(Integer, ForeignKey("order_cycles.id", ondelete="CASCADE"), nullable=False, index=True)
    placed_at = Column(DateTime(timezone=True))


class Order(Base):
    __tablename__ = "orders"
    id = Column(Integer, primary_key=True)
    number = Column(String(32), nullable=False)
    # No ON DELETE: an order keeps its order cycle alive
    order_cycle_id = Column(Integer, ForeignKey("order_cycles.id"), index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
