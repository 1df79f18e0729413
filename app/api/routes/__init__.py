from .auctions import router as auctions_router
from .dashboard import router as dashboard_router
from .websocket import router as countdown_router
