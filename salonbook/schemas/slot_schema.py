"""Availability query results and working-hours windows."""

from datetime import datetime, time

from pydantic import BaseModel, ConfigDict, model_validator


class WorkingHours(BaseModel):
    """A staff member's working window for one day, wall-clock times."""

    model_config = ConfigDict(frozen=True)

    start: time
    end: time

    @model_validator(mode="after")
    def _check_order(self) -> "WorkingHours":
        if self.start >= self.end:
            raise ValueError("working hours start must be before end")
        return self


class AvailableSlot(BaseModel):
    """A candidate interval for scheduling. Computed, never persisted."""

    model_config = ConfigDict(frozen=True)

    staff_id: str
    start_time: datetime
    end_time: datetime
