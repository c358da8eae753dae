"""Plans domain - plan catalogue, pricing and PayPal price reconciliation"""

from .router import router

__all__ = ["router"]
