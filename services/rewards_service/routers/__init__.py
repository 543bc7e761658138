"""Rewards service routers package."""

from services.rewards_service.routers.discounts import admin_router as admin_router
from services.rewards_service.routers.discounts import router as discounts_router
from services.rewards_service.routers.points import router as points_router

__all__ = [
    "admin_router",
    "discounts_router",
    "points_router",
]
