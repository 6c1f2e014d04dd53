from __future__ import annotations

from flask import Flask
from werkzeug.exceptions import HTTPException

from ..core.exceptions import (
    AuthorizationError,
    ConcurrentModificationError,
    DomainError,
    SchemaCompatibilityError,
    ValidationError,
)
from .http import fail

# Most specific first; the first match wins.
_DOMAIN_STATUS = (
    (AuthorizationError, 403, "FORBIDDEN"),
    (ConcurrentModificationError, 409, "CONCURRENT_MODIFICATION"),
    (SchemaCompatibilityError, 503, "SCHEMA_INCOMPLETE"),
    (ValidationError, 400, "VALIDATION_ERROR"),
)


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(DomainError)
    def _domain(e: DomainError):
        for exc_type, status, code in _DOMAIN_STATUS:
            if isinstance(e, exc_type):
                return fail(str(e), status=status, code=code)
        return fail(str(e), status=400, code="DOMAIN_ERROR")

    @app.errorhandler(HTTPException)
    def _http(e: HTTPException):
        return fail(e.description or e.name, status=e.code or 500)

    @app.errorhandler(Exception)
    def _500(e: Exception):
        app.logger.exception(e)
        return fail("Unexpected error, please try again", status=500)
