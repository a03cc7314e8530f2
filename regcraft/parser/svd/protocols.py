"""Typing protocols for parser mixins."""

from typing import Any, Optional, Protocol

from pydantic import ValidationError

from regcraft.errors import MalformedElement
from regcraft.model import AccessType


class ParserHostContext(Protocol):
    """Methods required by parser mixins from the main parser class."""

    def _error(self, message: str, path: str, element: Any) -> MalformedElement:
        """Build a MalformedElement for an element."""
        ...

    def _validation_error(
        self, error: ValidationError, path: str, element: Any
    ) -> MalformedElement:
        """Convert a Pydantic validation error into a MalformedElement."""
        ...

    def _element_label(self, element: Any, tag: str, index: int) -> str:
        """Path segment naming an element."""
        ...

    def _required_text(self, element: Any, tag: str, path: str) -> str:
        """Text of a required child element."""
        ...

    def _optional_text(self, element: Any, tag: str) -> Optional[str]:
        """Text of an optional child element."""
        ...

    def _required_int(self, element: Any, tag: str, path: str) -> int:
        """Integer value of a required child element."""
        ...

    def _optional_int(self, element: Any, tag: str, path: str) -> Optional[int]:
        """Integer value of an optional child element."""
        ...

    def _optional_access(self, element: Any, path: str) -> Optional[AccessType]:
        """Access type of an optional <access> child element."""
        ...
