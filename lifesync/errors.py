"""
errors.py - Error taxonomy for the LifeSync coaching API

Every handler failure is expressed as one of these exceptions. The exception
handlers registered in main.py turn them into the uniform JSON envelope:

- 401 -> {"error": "Unauthorized"}
- 403 (admin) -> {"error": "Admin access required"}
- 403 (premium) -> {"success": false, "error": ..., "isPremium": false}
- everything else -> {"success": false, "error": <message>, **details}
"""

from typing import Any, Dict, Optional


class LifeSyncError(Exception):
    """Base exception for the application."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_body(self) -> Dict[str, Any]:
        return {"success": False, "error": self.message, **self.details}


class ValidationError(LifeSyncError):
    """Missing or invalid input (400)."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=400, details=details)


class InsufficientDataError(ValidationError):
    """Not enough stored data to produce a result (400, success=false)."""


class AuthenticationError(LifeSyncError):
    """No resolvable caller identity (401)."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, status_code=401)

    def to_body(self) -> Dict[str, Any]:
        return {"error": self.message}


class AuthorizationError(LifeSyncError):
    """Caller role is insufficient (403)."""

    def __init__(self, message: str = "Admin access required"):
        super().__init__(message, status_code=403)

    def to_body(self) -> Dict[str, Any]:
        return {"error": self.message}


class SubscriptionRequiredError(LifeSyncError):
    """Caller lacks an active premium or pro subscription (403)."""

    def __init__(self, message: str = "Premium subscription required"):
        super().__init__(message, status_code=403, details={"isPremium": False})


class NotFoundError(LifeSyncError):
    """Referenced record does not exist (404)."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=404, details=details)


class ConflictError(LifeSyncError):
    """Stale optimistic-concurrency token (409)."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=409, details=details)


class UpstreamError(LifeSyncError):
    """The entity store or the LLM integration failed (500)."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=500, details=details)
