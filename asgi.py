"""
asgi.py -- Process entry point for the job board API.

Settings are read from the environment exactly once, here, and handed to the
app factory. Everything below create_app() receives configuration explicitly.

Run with:  uvicorn asgi:app --reload
"""

from api.main import create_app
from core.config import get_settings

app = create_app(get_settings())
