"""Cross-account invoice listings"""

from .router import router

__all__ = ["router"]
