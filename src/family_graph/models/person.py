"""Person record supplied by the external person directory."""
from __future__ import annotations

from datetime import date

from pydantic import BaseModel, Field


class Person(BaseModel):
    """The attributes of a person the graph engine reads. Never mutated here."""

    id: str
    gender: str | None = Field(default=None, description="'male', 'female' or None")
    birth_date: date | None = None
    is_alive: bool = True
    name: str | None = Field(default=None, description="Display name, optional")

    @property
    def is_male(self) -> bool:
        return (self.gender or "").lower() in ("male", "m")

    @property
    def is_female(self) -> bool:
        return (self.gender or "").lower() in ("female", "f")
