"""
API routes - combined router from all domain modules.

Shared infrastructure (limiter, error helpers) lives here; every sub-router
imports what it needs from this package.
"""

import logging
import os

from fastapi import APIRouter
from slowapi import Limiter
from slowapi.util import get_remote_address

from matchday.services.errors import StoreError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Shared rate limiter
# ---------------------------------------------------------------------------
IS_TEST_ENV = os.getenv("ENV", "").lower() == "test"
limiter = Limiter(key_func=get_remote_address)
if IS_TEST_ENV:

    def no_op_limit(*args, **kwargs):
        """No-op decorator for test mode - doesn't apply any rate limiting."""
        def decorator(func):
            return func
        return decorator

    limiter.limit = lambda *args, **kwargs: no_op_limit()


# ---------------------------------------------------------------------------
# Shared error handling
# ---------------------------------------------------------------------------
def store_error(action: str, exc: Exception) -> StoreError:
    """
    Log an unexpected failure and return the generic error reported to callers.

    Domain errors are re-raised by the handlers before this is reached.
    """
    logger.error(f"Error {action}: {exc}", exc_info=True)
    return StoreError("Internal server error")


# ---------------------------------------------------------------------------
# Import sub-routers and combine
# ---------------------------------------------------------------------------
from matchday.api.routes.auth import router as auth_router  # noqa: E402
from matchday.api.routes.players import router as players_router  # noqa: E402
from matchday.api.routes.matches import router as matches_router  # noqa: E402
from matchday.api.routes.admin import router as admin_router  # noqa: E402
from matchday.api.routes.realtime import router as realtime_router  # noqa: E402

router = APIRouter()
router.include_router(auth_router)
router.include_router(players_router)
router.include_router(matches_router)
router.include_router(admin_router)
router.include_router(realtime_router)
