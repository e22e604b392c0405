"""HTTP boundary: FastAPI app, resource service and payload transforms."""

from .app import create_app, respond
from .resources import MarketDataService

__all__ = ["create_app", "respond", "MarketDataService"]
