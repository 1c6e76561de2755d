# trip_dates/schemas/scheduling.py
from datetime import date
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    Request bodies use camelCase on the wire; snake_case is accepted too.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateTripPayload(CamelModel):
    name: str
    leader_user_id: str
    participant_ids: List[str] = Field(default_factory=list)
    start_bound: Optional[date] = None
    end_bound: Optional[date] = None

    @field_validator("name", "leader_user_id")
    def validate_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be blank")
        return v.strip()

    @model_validator(mode="after")
    def check_bounds(self) -> "CreateTripPayload":
        if self.start_bound and self.end_bound and self.end_bound < self.start_bound:
            raise ValueError("endBound must be on or after startBound")
        return self


class CreateWindowPayload(CamelModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    text: Optional[str] = None
    window_type: Literal["available", "blocker"] = "available"
    acknowledge_overlap: bool = False
    force_accept: bool = False


class ConcreteDates(CamelModel):
    start_date: date
    end_date: date

    @model_validator(mode="after")
    def check_end_after_start(self) -> "ConcreteDates":
        if self.end_date < self.start_date:
            raise ValueError("endDate must be on or after startDate")
        return self


class ProposePayload(CamelModel):
    window_id: Optional[int] = None
    window_ids: Optional[List[int]] = None
    leader_override: bool = False
    concrete_dates: Optional[ConcreteDates] = None

    def resolved_window_ids(self) -> List[int]:
        """`windowIds` wins; a lone `windowId` is a one-item shortlist."""
        if self.window_ids is not None:
            return list(self.window_ids)
        if self.window_id is not None:
            return [self.window_id]
        return []


class ReactPayload(CamelModel):
    window_id: Optional[int] = None
    reaction_type: Literal["WORKS", "CAVEAT", "CANT"]
    note: Optional[str] = None

    @field_validator("reaction_type", mode="before")
    def normalize_reaction_type(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v


class LockPayload(CamelModel):
    window_id: Optional[int] = None
    leader_override: bool = False
