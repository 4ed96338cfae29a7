"""
asgi.py -- Application assembly for AccountGate.

This is the only file that mounts the browser form routes onto the API app.
api/main.py knows nothing about web/.

Run with:  uvicorn asgi:app --reload
"""

from api.main import app
from web.routes import router as web_router

# Mount the browser form router here, not in api/main.py.
app.include_router(web_router, tags=["Web"])
