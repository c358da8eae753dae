"""Cross-account patient listings"""

from .router import router

__all__ = ["router"]
