from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Availability(StrEnum):
    unavailable = "unavailable"
    downloadable = "downloadable"
    downloading = "downloading"
    available = "available"

    @property
    def can_initialize(self) -> bool:
        """Downloadable/downloading runtimes start the download on create()."""
        return self != Availability.unavailable


class AiModel(StrEnum):
    gemini_nano = "gemini-nano"
    gemini_2_5_pro = "gemini-2.5-pro"
    gemini_2_5_flash_lite = "gemini-2.5-flash-lite"

    @property
    def is_on_device(self) -> bool:
        return self == AiModel.gemini_nano


class AvailabilityState(BaseModel):
    status: Availability = Availability.unavailable

    @property
    def is_ready(self) -> bool:
        return self.status == Availability.available


class QuotaUsage(BaseModel):
    current: float
    quota: float
    percentage: float

    @classmethod
    def from_counts(cls, current: float, quota: float, *, clamp: bool = False) -> QuotaUsage:
        percentage = (current / quota) * 100 if quota > 0 else 0.0
        if clamp:
            percentage = min(max(percentage, 0.0), 100.0)
        return cls(current=current, quota=quota, percentage=percentage)

    @property
    def is_over_budget(self) -> bool:
        return self.percentage > 100


class ToolSelectionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tool_name: str = Field(alias="toolName")

    @field_validator("tool_name")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("toolName must be a non-empty string")
        return value.strip()


class FormInputElement(BaseModel):
    """An actual ``<input>``/``<textarea>`` located inside a captured fragment."""

    selector: str
    html: str
    css: str = ""


FormFieldMapping = dict[str, str | None]


__all__ = [
    "AiModel",
    "Availability",
    "AvailabilityState",
    "FormFieldMapping",
    "FormInputElement",
    "QuotaUsage",
    "ToolSelectionResponse",
]
