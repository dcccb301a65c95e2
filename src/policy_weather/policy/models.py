"""Typed model for coverage data extracted from declaration pages."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

NOT_FOUND = "Not found"


class PolicyDetails(BaseModel):
    """Coverage amounts, deductibles and the policy period/location."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    coverage_a: str | None = Field(default=None, alias="coverageA")
    coverage_b: str | None = Field(default=None, alias="coverageB")
    coverage_c: str | None = Field(default=None, alias="coverageC")
    coverage_d: str | None = Field(default=None, alias="coverageD")
    deductible: str | None = None
    windstorm_deductible: str | None = Field(default=None, alias="windstormDeductible")
    effective_date: str | None = Field(default=None, alias="effectiveDate")
    expiration_date: str | None = Field(default=None, alias="expirationDate")
    location: str | None = None

    @field_validator("*", mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> Any:
        """Models sometimes answer with numbers or blanks; keep everything as text."""
        if value is None:
            return None
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, str):
            stripped = value.strip()
            return stripped or None
        return value

    @property
    def has_search_inputs(self) -> bool:
        return bool(self.location and self.effective_date and self.expiration_date)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
