# auctions/exceptions.py
import logging
from contextlib import contextmanager

from django.db import DatabaseError
from rest_framework import status
from rest_framework.exceptions import APIException, NotFound, ValidationError

logger = logging.getLogger(__name__)

__all__ = [
    'ValidationError', 'NotFoundError', 'ConflictError',
    'AccountRestrictedError', 'DependencyError', 'persistence_guard',
]


class NotFoundError(NotFound):
    default_detail = 'Not found.'


class ConflictError(APIException):
    """Business-rule rejection. Never retried automatically."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Request conflicts with the current auction state.'
    default_code = 'conflict'

    def __init__(self, detail=None, code=None, current_price=None):
        super().__init__(detail, code)
        self.code = code or self.default_code
        self.current_price = current_price

    def as_payload(self):
        payload = {"error": str(self.detail), "code": self.code}
        if self.current_price is not None:
            payload["current_price"] = str(self.current_price)
        return payload


class AccountRestrictedError(ConflictError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'Your account has been banned.'
    default_code = 'account_restricted'


class DependencyError(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'Storage backend unavailable, please retry later.'
    default_code = 'dependency_error'


@contextmanager
def persistence_guard(operation):
    """Re-raise database failures as DependencyError.

    Wrap this around the ``transaction.atomic`` block, so the rollback has
    already happened when the error reaches the caller.
    """
    try:
        yield
    except DatabaseError as exc:
        logger.exception("Persistence failure during %s", operation)
        raise DependencyError() from exc
