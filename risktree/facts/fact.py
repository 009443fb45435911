"""
Facts: pieces of evidence supporting an estimate.

A plain Fact is a note with context and source; FactHardNumber carries a
single observed value, FactRange a three-point estimate. Nodes reference
facts by id; the model owns the collection.
"""

import uuid
from datetime import datetime, timezone
from typing import Annotated, Iterator, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from risktree.engine.tracking import current_user


class Fact(BaseModel):
    """A piece of evidence."""

    model_config = ConfigDict(validate_assignment=True)

    type: Literal["Fact"] = "Fact"
    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    name: str = Field(min_length=1)
    context: Optional[str] = Field(default=None, description="Where the fact applies")
    source: Optional[str] = Field(default=None, description="Where the fact comes from")
    details: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    created_by: str = Field(default_factory=current_user)
    created_on: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class FactHardNumber(Fact):
    """An observed number, e.g. incidents last year."""

    type: Literal["FactHardNumber"] = "FactHardNumber"
    value: float


class FactRange(Fact):
    """An estimate from a third party, kept as min/mode/max."""

    type: Literal["FactRange"] = "FactRange"
    min: float
    mode: float
    max: float
    confidence: Literal["Low", "Moderate", "High"] = "Moderate"

    @model_validator(mode="after")
    def _check_order(self) -> "FactRange":
        if not self.min <= self.mode <= self.max:
            raise ValueError("FactRange requires min <= mode <= max")
        return self


AnyFact = Annotated[Union[Fact, FactHardNumber, FactRange], Field(discriminator="type")]


class FactsCollection:
    """Ordered facts keyed by id."""

    def __init__(self):
        self._facts: dict[uuid.UUID, Fact] = {}

    def add(self, fact: Fact) -> Fact:
        self._facts[fact.id] = fact
        return fact

    def get(self, fact_id: uuid.UUID) -> Optional[Fact]:
        return self._facts.get(fact_id)

    def remove(self, fact_id: uuid.UUID) -> Optional[Fact]:
        return self._facts.pop(fact_id, None)

    def clear(self) -> None:
        self._facts.clear()

    @property
    def ids(self) -> list[uuid.UUID]:
        return list(self._facts)

    def __contains__(self, fact_id: object) -> bool:
        return fact_id in self._facts

    def __iter__(self) -> Iterator[Fact]:
        return iter(list(self._facts.values()))

    def __len__(self) -> int:
        return len(self._facts)
