from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

from pixelmorpher.database import Database
from pixelmorpher.errors import PixelMorpherError

T = TypeVar("T")


@dataclass
class ActionContext:
    """Collaborators shared by the action handlers."""

    database: Database
    revalidator: Any
    media: Any = None

    def revalidate(self, path: str):
        self.revalidator.revalidate_path(path)


@dataclass(frozen=True)
class ActionResult(Generic[T]):
    """Outcome of an action: either ``value`` or ``error`` is set.

    ``redirect_to`` names the route the caller should navigate to, if any.
    """

    value: Optional[T] = None
    error: Optional[Exception] = None
    redirect_to: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T = None, redirect_to: Optional[str] = None) -> "ActionResult[T]":
        return cls(value=value, redirect_to=redirect_to)

    @classmethod
    def failure(cls, error: Exception, redirect_to: Optional[str] = None) -> "ActionResult[T]":
        return cls(error=error, redirect_to=redirect_to)

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value

    @property
    def message(self) -> Optional[str]:
        if self.error is None:
            return None
        if isinstance(self.error, PixelMorpherError):
            return str(self.error)
        return f"{self.error.__class__.__name__}: {self.error}"
