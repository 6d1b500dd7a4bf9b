"""Typed outcome of a service call made from an HTTP handler."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Generic, Optional, TypeVar

from werkzeug.exceptions import HTTPException

from .errors import DomainActionError, RequestValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ErrorKind(str, Enum):
    DOMAIN = "domain"
    INTERNAL = "internal"


@dataclass(slots=True)
class ServiceResult(Generic[T]):
    value: Optional[T] = None
    error_kind: Optional[ErrorKind] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error_kind is None

    @property
    def is_domain_error(self) -> bool:
        return self.error_kind is ErrorKind.DOMAIN

    @classmethod
    def success(cls, value: T) -> "ServiceResult[T]":
        return cls(value=value)

    @classmethod
    def domain_failure(cls, message: str) -> "ServiceResult[T]":
        return cls(error_kind=ErrorKind.DOMAIN, message=message)

    @classmethod
    def internal_failure(cls) -> "ServiceResult[T]":
        return cls(error_kind=ErrorKind.INTERNAL)


def capture(callback: Callable[[], T], *, operation: str = "service call") -> ServiceResult[T]:
    """Run ``callback`` and classify its failure.

    HTTP aborts and validation errors keep propagating so the app-level
    handlers render them. Domain errors keep their message; anything else is
    logged with its traceback and reported without detail.
    """
    try:
        return ServiceResult.success(callback())
    except (HTTPException, RequestValidationError):
        raise
    except DomainActionError as exc:
        logger.info("%s rejected: %s", operation, exc.message)
        return ServiceResult.domain_failure(exc.message)
    except Exception:
        logger.exception("%s failed", operation)
        return ServiceResult.internal_failure()
