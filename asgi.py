"""
asgi.py -- ASGI entry point for cratehold.

Run with:  uvicorn asgi:app
           python main.py --objstore my-bucket --rules rules.yaml
"""

from api.main import app

__all__ = ["app"]
