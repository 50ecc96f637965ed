"""Category records, user input, and operation results."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from yearbird.errors import ErrorKind


class MatchMode(StrEnum):
    ANY = "any"
    ALL = "all"

    @classmethod
    def normalize(cls, value: object) -> MatchMode:
        """Anything other than ``"all"`` means ``"any"``."""
        if isinstance(value, str) and value.strip().lower() == cls.ALL.value:
            return cls.ALL
        return cls.ANY


class Category(BaseModel):
    """A keyword rule that assigns events to a coloured bucket.

    Serialized with camelCase keys (``matchMode``, ``isDefault``,
    ``createdAt``, ``updatedAt``) so the stored payload and the cloud-sync
    payload share one shape.  Timestamps are epoch milliseconds.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    label: str
    color: str
    keywords: tuple[str, ...] = ()
    match_mode: MatchMode = Field(default=MatchMode.ANY, alias="matchMode")
    is_default: bool = Field(default=False, alias="isDefault")
    created_at: int = Field(default=0, alias="createdAt")
    updated_at: int = Field(default=0, alias="updatedAt")

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class CategoryInput(BaseModel):
    """Form input for creating or editing a category; validated by the store."""

    label: str = ""
    color: str = ""
    keywords: list[str] = Field(default_factory=list)
    match_mode: str = "any"


@dataclass(frozen=True)
class CategoryResult:
    """Outcome of a category mutation.

    Validation failures are returned here as ``error`` rather than raised,
    so the caller can render the message next to the form field.
    """

    category: Category | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def kind(self) -> ErrorKind | None:
        return None if self.ok else ErrorKind.VALIDATION_ERROR

    @classmethod
    def success(cls, category: Category) -> CategoryResult:
        return cls(category=category)

    @classmethod
    def failure(cls, message: str) -> CategoryResult:
        return cls(error=message)
