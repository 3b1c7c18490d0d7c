"""
API Routes Module
"""
from .health import router as health_router
from .ledger import router as ledger_router
from .platforms import router as platforms_router
from .records import router as records_router
from .reports import router as reports_router
from .taxonomy import router as taxonomy_router

__all__ = [
    "health_router",
    "ledger_router",
    "platforms_router",
    "records_router",
    "reports_router",
    "taxonomy_router",
]
