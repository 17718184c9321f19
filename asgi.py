"""
asgi.py -- Process entry point for the Wishlist identity backend.

Builds the application once from the environment (.env / env vars) via
core.config.get_settings(). Nothing else in the tree reads configuration at
import time.

Run with:  uvicorn asgi:app --reload
"""

from api.main import create_app

app = create_app()
