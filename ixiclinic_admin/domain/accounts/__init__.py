"""Tenant account administration"""

from .router import router

__all__ = ["router"]
