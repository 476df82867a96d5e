"""FastAPI routers package."""

from .availability import router as availability_router
from .bookings import router as bookings_router
from .costumes import router as costumes_router
from .metrics import router as metrics_router

__all__ = [
    "availability_router",
    "bookings_router",
    "costumes_router",
    "metrics_router",
]
