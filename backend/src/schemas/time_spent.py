"""Pydantic schemas for the time-spent beacon endpoint."""
from pydantic import BaseModel, ConfigDict, Field


class TimeSpentBeacon(BaseModel):
    """Payload sent by the unload flush (camelCase on the wire)."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId", min_length=1)
    problem_id: str = Field(alias="problemId", min_length=1)
    seconds: int = Field(gt=0)


class TimeSpentResponse(BaseModel):
    """Whether the time was recorded."""

    recorded: bool
