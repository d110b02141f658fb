"""
Clinic model representing a dental clinic (the tenant).

A clinic is the top-level entity that owns members, patients and settings.
Name uniqueness is case-insensitive and enforced by a pre-check in the
workflows that create clinics, not by a storage constraint.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator
from sqlalchemy import String, TIMESTAMP, Boolean
from sqlalchemy.orm import Mapped, mapped_column

from core.constants import MAX_STRING_LENGTH, DEFAULT_SUBSCRIPTION_STATUS, DEFAULT_CLINIC_SCHEDULE
from models.base import Base, JSONType


# Schedule schema validation models
class TimeRange(BaseModel):
    """Opening interval within a day (24-hour HH:MM)."""
    start: str = Field(pattern=r"^\d{2}:\d{2}$")
    end: str = Field(pattern=r"^\d{2}:\d{2}$")

    @field_validator('end')
    @classmethod
    def end_after_start(cls, v: str, info: Any) -> str:
        start = info.data.get('start')
        if start and v <= start:
            raise ValueError("end must be after start")
        return v


class ClinicSchedule(BaseModel):
    """Weekly availability, one list of intervals per weekday."""
    monday: List[TimeRange] = Field(default_factory=list)
    tuesday: List[TimeRange] = Field(default_factory=list)
    wednesday: List[TimeRange] = Field(default_factory=list)
    thursday: List[TimeRange] = Field(default_factory=list)
    friday: List[TimeRange] = Field(default_factory=list)
    saturday: List[TimeRange] = Field(default_factory=list)
    sunday: List[TimeRange] = Field(default_factory=list)

    @classmethod
    def default(cls) -> "ClinicSchedule":
        return cls.model_validate(DEFAULT_CLINIC_SCHEDULE)


def default_schedule() -> Dict[str, Any]:
    return ClinicSchedule.default().model_dump()


class Clinic(Base):
    """Dental clinic tenant."""

    __tablename__ = "clinics"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH))
    first_setup_required: Mapped[bool] = mapped_column(Boolean, default=True)
    subscription_status: Mapped[str] = mapped_column(String(50), default=DEFAULT_SUBSCRIPTION_STATUS)
    schedule: Mapped[Dict[str, Any]] = mapped_column(JSONType, default=default_schedule)
    theme: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType, nullable=True)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    def get_schedule(self) -> ClinicSchedule:
        """Get validated schedule, falling back to the default week."""
        if not self.schedule:
            return ClinicSchedule.default()
        return ClinicSchedule.model_validate(self.schedule)

    def __repr__(self) -> str:
        return f"<Clinic(id={self.id}, name='{self.name}')>"
