"""Device bridge FastAPI application."""

from .main import create_app
from .settings import BridgeSettings

__all__ = ["create_app", "BridgeSettings"]
