"""
Authorization error taxonomy and its HTTP rendering.

Every failure is scoped to a single request and none is retried
automatically. The HTTP layer installs ``install_error_handlers`` so each
error renders as ``{"error": {"code", "message", "status"}}``.
"""

from __future__ import annotations

from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from taskpayable_shared.schemas.invitations import InvalidReason

log = structlog.get_logger()


class AuthzError(Exception):
    """Base class for every error raised by the engine."""

    status_code: int = 400
    code: str = "AUTHZ_ERROR"
    default_message: str = "Request could not be authorized"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "status": self.status_code,
        }


class Unauthorized(AuthzError):
    status_code = 401
    code = "UNAUTHORIZED"
    default_message = "Authentication required"


class Forbidden(AuthzError):
    status_code = 403
    code = "FORBIDDEN"
    default_message = "Insufficient permissions"


class AccountPendingApproval(AuthzError):
    status_code = 403
    code = "ACCOUNT_PENDING_APPROVAL"
    default_message = (
        "Your account is pending approval. Please contact an organization administrator."
    )


class ValidationError(AuthzError):
    status_code = 422
    code = "VALIDATION_ERROR"
    default_message = "Invalid input"


class InvitationInvalid(AuthzError):
    status_code = 400
    code = "INVITATION_INVALID"

    _MESSAGES = {
        InvalidReason.NOT_FOUND: "Invitation link not found",
        InvalidReason.DEACTIVATED: "This invitation link has been deactivated",
        InvalidReason.EXPIRED: "This invitation link has expired",
        InvalidReason.EXHAUSTED: "This invitation link has reached its maximum uses",
    }

    def __init__(self, reason: InvalidReason, message: Optional[str] = None):
        self.reason = reason
        if reason == InvalidReason.NOT_FOUND:
            self.status_code = 404
        super().__init__(message or self._MESSAGES[reason])

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["reason"] = self.reason.value
        return body


class Conflict(AuthzError):
    status_code = 409
    code = "CONFLICT"
    default_message = "Request conflicts with the current state"


class OrganizationNotEmpty(Conflict):
    code = "ORGANIZATION_NOT_EMPTY"

    def __init__(self, members: int, projects: int):
        self.members = members
        self.projects = projects
        if members:
            message = "Cannot delete organization with existing users. Please remove all users first."
        else:
            message = "Cannot delete organization with existing projects. Please delete all projects first."
        super().__init__(message)


class NotFound(AuthzError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Resource not found"


# ---------------------------------------------------------------------------
# HTTP rendering
# ---------------------------------------------------------------------------

async def authz_error_handler(request: Request, exc: AuthzError) -> JSONResponse:
    log.info(
        "request.rejected",
        path=request.url.path,
        code=exc.code,
        status=exc.status_code,
    )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})


def install_error_handlers(app: FastAPI) -> None:
    """Render every engine error with the standard error envelope."""
    app.add_exception_handler(AuthzError, authz_error_handler)
