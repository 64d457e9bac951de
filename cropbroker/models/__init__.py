"""
SQLAlchemy models for the crop brokerage backend.

This module exports all models and the Base class for easy imports:
    from cropbroker.models import Base, User, Trade, Order, Buyer, Log
"""

from cropbroker.database import Base
from cropbroker.models.user import User, UserRole
from cropbroker.models.trade import Trade, TradeStatus
from cropbroker.models.order import Order, OrderStatus, PaymentStatus
from cropbroker.models.buyer import Buyer, BuyerStatus
from cropbroker.models.purchase_order import PurchaseOrder, PurchaseOrderStatus
from cropbroker.models.invoice import Invoice, InvoiceStatus
from cropbroker.models.log import ActorType, EntityType, Log, LogType

__all__ = [
    "Base",
    "User",
    "UserRole",
    "Trade",
    "TradeStatus",
    "Order",
    "OrderStatus",
    "PaymentStatus",
    "Buyer",
    "BuyerStatus",
    "PurchaseOrder",
    "PurchaseOrderStatus",
    "Invoice",
    "InvoiceStatus",
    "Log",
    "LogType",
    "EntityType",
    "ActorType",
]
