"""
Analytics HTTP routes.
"""

from .dashboard import create_dashboard_router

__all__ = ["create_dashboard_router"]
