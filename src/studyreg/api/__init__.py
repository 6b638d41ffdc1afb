"""
Study Registration API Layer

FastAPI interface.
"""

from studyreg.api.routes import create_app, router

__all__ = ["create_app", "router"]
