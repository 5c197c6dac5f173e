# app/verticals/offers/schemas/rates.py
from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, NonNegativeFloat, model_validator


class RateTierIn(BaseModel):
    """One weight tier. Wire keys: from / to / eur (cost accepted as alias)."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    from_: NonNegativeFloat = Field(alias="from")
    to: Optional[float] = None  # None = open-ended
    eur: NonNegativeFloat = Field(validation_alias=AliasChoices("eur", "cost"))

    @model_validator(mode="after")
    def _check_range(self) -> "RateTierIn":
        if self.to is not None and self.to < self.from_:
            raise ValueError(f"tier 'to' ({self.to}) must be >= 'from' ({self.from_})")
        return self


class RateTableIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    validity: str = ""
    tiers: List[RateTierIn] = Field(default_factory=list)


SupplierRatesIn = Dict[str, RateTableIn]


def rates_to_wire(rates: Dict[str, RateTableIn]) -> Dict[str, dict]:
    return {party: table.model_dump(by_alias=True) for party, table in rates.items()}
