"""
asgi.py -- ASGI entry point for FleetRent.

Run with:  uvicorn asgi:app --reload
           python main.py serve
"""

from api.main import app

__all__ = ["app"]
