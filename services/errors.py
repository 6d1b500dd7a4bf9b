"""Application exception types shared by services and routes."""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class RoleDeskError(Exception):
    """Base exception for RoleDesk application errors."""

    def __init__(self, message: str, code: str = "UNKNOWN_ERROR", details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}


class DomainActionError(RoleDeskError):
    """Expected business-rule violation; its message is safe to show to the user."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "DOMAIN_ACTION", details)


class RequestValidationError(RoleDeskError):
    """Raised at the HTTP boundary when request input fails validation."""

    def __init__(self, errors: Dict[str, List[str]], message: str = "Los datos proporcionados no son válidos."):
        super().__init__(message, "VALIDATION_ERROR", {"errors": errors})
        self.errors = errors


__all__ = ["RoleDeskError", "DomainActionError", "RequestValidationError"]
