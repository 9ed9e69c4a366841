"""API package exposing the agent over HTTP/JSON."""

from . import router
from .main import app

__all__ = ["router", "app"]
