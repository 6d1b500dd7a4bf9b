"""Input validation helpers."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, TypeVar

from flask import current_app, has_app_context

from .errors import RequestValidationError

T = TypeVar("T")

_TRUE_VALUES = {"1", "true", "on", "yes"}
_FALSE_VALUES = {"0", "false", "off", "no"}


@dataclass
class ValidationError(ValueError):
    message: str
    field: str | None = None
    invalid: List[Any] | None = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.message


def log_validation_error(err: ValidationError, *, context: str | None = None) -> None:
    if not has_app_context():
        return
    suffix = f" ({context})" if context else ""
    current_app.logger.warning(
        "Validation error%s: field=%s invalid=%s message=%s",
        suffix,
        err.field,
        err.invalid,
        err.message,
    )


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def parse_positive_int(
    value: Any,
    *,
    field: str = "id",
    min_value: int = 1,
    max_value: int | None = None,
) -> int:
    if _blank(value):
        raise ValidationError(f"El campo {field} es obligatorio.", field=field, invalid=[value])
    if isinstance(value, bool):
        raise ValidationError(f"El campo {field} debe ser un número entero.", field=field, invalid=[value])
    try:
        out = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"El campo {field} debe ser un número entero.", field=field, invalid=[value])
    if out < min_value:
        raise ValidationError(f"El campo {field} debe ser al menos {min_value}.", field=field, invalid=[value])
    if max_value is not None and out > max_value:
        raise ValidationError(f"El campo {field} no debe ser mayor que {max_value}.", field=field, invalid=[value])
    return out


def parse_optional_positive_int(
    value: Any,
    *,
    field: str = "id",
    min_value: int = 1,
    max_value: int | None = None,
    default: int | None = None,
) -> int | None:
    if _blank(value):
        return default
    return parse_positive_int(value, field=field, min_value=min_value, max_value=max_value)


def _flatten(values: Iterable[Any]) -> Iterable[Any]:
    for value in values:
        if isinstance(value, (list, tuple, set)):
            yield from _flatten(value)
        else:
            yield value


def parse_positive_int_list(values: Iterable[Any], *, field: str = "ids", min_value: int = 1) -> list[int]:
    invalid: list[Any] = []
    output: list[int] = []
    for raw in _flatten(values):
        if raw is None:
            continue
        if isinstance(raw, bool):
            invalid.append(raw)
            continue
        text = str(raw).strip()
        if not text:
            continue
        parts = [part.strip() for part in text.split(",")] if "," in text else [text]
        for part in parts:
            if not part:
                continue
            try:
                val = int(part)
            except (TypeError, ValueError):
                invalid.append(part)
                continue
            if val < min_value:
                invalid.append(part)
                continue
            output.append(val)
    if invalid:
        raise ValidationError(f"El campo {field} contiene valores no válidos.", field=field, invalid=invalid)
    return list(dict.fromkeys(output))


def parse_uuid_list(values: Iterable[Any], *, field: str = "uuids") -> list[str]:
    invalid: list[Any] = []
    output: list[str] = []
    for raw in _flatten(values):
        if _blank(raw):
            continue
        text = str(raw).strip()
        try:
            output.append(str(uuid.UUID(text)))
        except ValueError:
            invalid.append(text)
    if invalid:
        raise ValidationError(f"El campo {field} debe contener UUIDs válidos.", field=field, invalid=invalid)
    return list(dict.fromkeys(output))


def parse_bool(value: Any, *, field: str, default: bool | None = None) -> bool:
    if _blank(value):
        if default is None:
            raise ValidationError(f"El campo {field} es obligatorio.", field=field, invalid=[value])
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ValidationError(f"El campo {field} debe ser verdadero o falso.", field=field, invalid=[value])


def parse_choice(value: Any, *, field: str, choices: Iterable[str], default: str | None = None) -> str | None:
    if _blank(value):
        return default
    text = str(value).strip()
    if text not in set(choices):
        raise ValidationError(f"El valor seleccionado para {field} no es válido.", field=field, invalid=[value])
    return text


def parse_string(
    value: Any,
    *,
    field: str,
    required: bool = False,
    max_length: int = 255,
) -> str | None:
    if _blank(value):
        if required:
            raise ValidationError(f"El campo {field} es obligatorio.", field=field, invalid=[value])
        return None
    if not isinstance(value, str):
        raise ValidationError(f"El campo {field} debe ser un texto.", field=field, invalid=[value])
    text = value.strip()
    if len(text) > max_length:
        raise ValidationError(
            f"El campo {field} no debe tener más de {max_length} caracteres.",
            field=field,
            invalid=[value],
        )
    return text


def parse_email(value: Any, *, field: str = "email") -> str:
    text = parse_string(value, field=field, required=True, max_length=255) or ""
    local, _, domain = text.partition("@")
    if not local or "." not in domain or " " in text:
        raise ValidationError(f"El campo {field} debe ser una dirección de correo válida.", field=field, invalid=[value])
    return text.lower()


class ErrorBag:
    """Collects field errors so a request reports every invalid field at once."""

    def __init__(self) -> None:
        self.errors: Dict[str, List[str]] = {}

    def add(self, field: str, message: str) -> None:
        self.errors.setdefault(field, []).append(message)

    def check(self, parser: Callable[..., T], *args: Any, fallback: Optional[T] = None, **kwargs: Any) -> Optional[T]:
        """Run `parser`, recording its error and returning `fallback` on failure.

        Keyword arguments such as `default` reach the parser untouched.
        """
        try:
            return parser(*args, **kwargs)
        except ValidationError as err:
            log_validation_error(err)
            self.add(err.field or kwargs.get("field") or "input", err.message)
            return fallback

    def raise_if_any(self) -> None:
        if self.errors:
            raise RequestValidationError(self.errors)

    def __bool__(self) -> bool:
        return bool(self.errors)
