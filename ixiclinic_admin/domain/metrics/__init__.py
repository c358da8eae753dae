"""Dashboard metrics and system alerts"""

from .router import router

__all__ = ["router"]
