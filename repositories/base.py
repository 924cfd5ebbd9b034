# ============================================================================
# BASE REPOSITORY - ERROR HANDLING
# ============================================================================
# EPOCH: 1 - TRACEABILITY CORE
# STATUS: Infrastructure - Base repository patterns
# PURPOSE: Common error wrapping and logging for all PostgreSQL repositories
# CREATED: 03 OCT 2026
# ============================================================================
"""
Base Repository Patterns

Every PostgreSQL repository extends BaseRepository so that driver failures
surface uniformly as PersistenceError (the one retryable error class),
while domain errors raised inside a repository pass through untouched.
"""

import logging
from contextlib import contextmanager
from typing import Optional

from psycopg_pool import AsyncConnectionPool

from core.errors import PersistenceError, TraceabilityError


class BaseRepository:
    """Base class holding the pool and the error context manager."""

    def __init__(self, pool: AsyncConnectionPool):
        self.pool = pool
        self.logger = logging.getLogger(self.__class__.__module__)

    @contextmanager
    def _error_context(self, operation: str, entity_id: Optional[str] = None):
        """
        Wrap a storage operation.

        Domain errors are re-raised unchanged; anything else is logged and
        re-raised as PersistenceError.

        Example:
            with self._error_context("vti insert", vti.vti_id):
                async with self.pool.connection() as conn:
                    ...
        """
        try:
            yield
        except TraceabilityError:
            raise
        except Exception as e:
            error_msg = f"{operation} failed"
            if entity_id:
                error_msg += f" for {entity_id}"
            error_msg += f": {e}"
            self.logger.error(error_msg)
            raise PersistenceError(error_msg, operation=operation, entity_id=entity_id) from e
