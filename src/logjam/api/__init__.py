"""
API endpoints package.

Contains FastAPI routers for all service endpoints:
- /log, /multi - Log ingestion (token required)
- /, /doc - Root and documentation page
- /health, /readyz - Health checks
- /metrics - Prometheus metrics
"""
from .healthz import router as healthz_router
from .logs import router as logs_router
from .metrics import router as metrics_router
from .site import router as site_router

__all__ = ["healthz_router", "logs_router", "metrics_router", "site_router"]
