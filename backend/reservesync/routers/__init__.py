"""API routers."""

from reservesync.routers.health import router as health_router
from reservesync.routers.reservations import router as reservations_router

__all__ = ["health_router", "reservations_router"]
