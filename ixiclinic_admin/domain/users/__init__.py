"""Staff users across accounts"""

from .router import router

__all__ = ["router"]
