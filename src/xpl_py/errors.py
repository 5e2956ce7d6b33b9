"""xPL error types."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from xpl_py.types.enums import ValidationErrorCode


class XplError(Exception):
    """Base exception for xPL protocol errors."""


class XplValidationError(XplError):
    """A decoded message failed schema validation.

    Raised synchronously from the decode path and converted into a
    ``validationError`` publication at the socket receive boundary.
    """

    def __init__(
        self,
        code: ValidationErrorCode,
        message: str,
        field: str | None = None,
    ) -> None:
        """Initialise a validation error.

        :param code: Stable failure code.
        :param message: Human-readable description.
        :param field: Name of the offending field, when there is one.
        """
        self.code = code
        self.field = field
        super().__init__(message)
