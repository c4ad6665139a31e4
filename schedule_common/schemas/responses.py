"""
Response Schemas for the Workload Schedule Operator

Payloads returned by external collaborators (the World Time API) and by the
operator's own components.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime


class TimeSnapshot(BaseModel):
    """
    Current wall-clock time in a timezone

    Parsed from GET {base}/{timezone}. Only the hour of the local time feeds
    the scaling decision; everything else is carried for reporting.
    """
    model_config = ConfigDict(populate_by_name=True)

    timezone: str = Field(..., description="Timezone identifier")
    local_datetime: datetime = Field(..., alias="datetime", description="Local time, offset-aware")
    utc_datetime: Optional[str] = Field(None, description="UTC timestamp as returned")
    utc_offset: Optional[str] = Field(None, description="UTC offset, e.g. -05:00")
    day_of_week: Optional[int] = Field(None)
    day_of_year: Optional[int] = Field(None)
    week_number: Optional[int] = Field(None)

    @property
    def hour(self) -> int:
        return self.local_datetime.hour

    def local_time_string(self) -> str:
        """RFC3339 local time, seconds precision"""
        return self.local_datetime.replace(microsecond=0).isoformat()


class ScaleOutcome(BaseModel):
    """Result of one ScalingEngine convergence step"""
    action: str = Field(..., description="Human-readable description of what happened")
    replicas: int = Field(..., description="Observed replica count after the step")
    changed: bool = Field(False, description="A write was issued")
