from .items_api import router as items_api_router
from .loans_api import router as loans_api_router
from .reservations_api import router as reservations_api_router
from .sweeps_api import router as sweeps_api_router

ALL_ROUTERS = (
    items_api_router,
    loans_api_router,
    reservations_api_router,
    sweeps_api_router,
)
