"""Error taxonomy shared by every service operation.

Services raise these; the HTTP layer turns them into
``{"success": false, "error": {"kind": ..., "message": ...}}`` envelopes.
Collaborator failures are translated at the operation boundary with
:func:`backend_errors`.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator

from pymongo.errors import DuplicateKeyError, PyMongoError

from .repositories.exceptions import (
    DuplicateKeyRepositoryError,
    NotFoundRepositoryError,
)

LOGGER = logging.getLogger("uvicorn.error")


class ServiceError(Exception):
    """Base class for failures surfaced to callers."""

    kind = "ServiceError"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message}


class NotFoundError(ServiceError):
    kind = "NotFound"
    status_code = 404


class AlreadyExistsError(ServiceError):
    kind = "AlreadyExists"
    status_code = 409


class InvalidOperationError(ServiceError):
    kind = "InvalidOperation"
    status_code = 400


class BackendUnavailableError(ServiceError):
    kind = "BackendUnavailable"
    status_code = 503


class AuthenticationError(ServiceError):
    kind = "Unauthenticated"
    status_code = 401


@contextmanager
def backend_errors(operation: str) -> Iterator[None]:
    """Translate repository and driver exceptions raised inside the block."""

    try:
        yield
    except ServiceError:
        raise
    except NotFoundRepositoryError as exc:
        raise NotFoundError(str(exc)) from exc
    except (DuplicateKeyRepositoryError, DuplicateKeyError) as exc:
        raise AlreadyExistsError(str(exc)) from exc
    except PyMongoError as exc:
        LOGGER.error("%s failed: %s", operation, exc)
        raise BackendUnavailableError(f"{operation} failed: backend unavailable") from exc


__all__ = [
    "AlreadyExistsError",
    "AuthenticationError",
    "BackendUnavailableError",
    "InvalidOperationError",
    "NotFoundError",
    "ServiceError",
    "backend_errors",
]
