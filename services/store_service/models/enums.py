"""Enum definitions for store service models."""

import enum


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    READY_FOR_PICKUP = "ready_for_pickup"
    PICKED_UP = "picked_up"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


# Statuses whose money counts toward a retailer's earnings.
EARNING_EXCLUDED_STATUSES = (OrderStatus.PENDING, OrderStatus.CANCELLED)
