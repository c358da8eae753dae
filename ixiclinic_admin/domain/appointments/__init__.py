"""Cross-account appointment listings"""

from .router import router

__all__ = ["router"]
