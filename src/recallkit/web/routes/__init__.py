"""Web routes for recallkit."""

from recallkit.web.routes.cards import router as cards_router
from recallkit.web.routes.review import router as review_router

__all__ = ["cards_router", "review_router"]
