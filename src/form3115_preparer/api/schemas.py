"""Pydantic v2 schemas for API request/response models."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class HealthResponse(BaseModel):
    status: str
    version: str | None = None


# Client Schemas
class ClientCreate(BaseModel):
    """Schema for creating a client."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=255)
    ein: str | None = Field(default=None, max_length=20)
    entity_type: (
        Literal["c-corp", "s-corp", "partnership", "llc", "sole-prop", "nonprofit"]
        | None
    ) = None
    address: str | None = None
    city: str | None = None
    state: str | None = Field(default=None, max_length=2)
    zip_code: str | None = Field(default=None, max_length=10)
    contact_name: str | None = None
    contact_phone: str | None = None
    contact_email: str | None = None
    tax_year_end: str | None = None


class ClientUpdate(BaseModel):
    """Schema for updating a client; omitted fields are left unchanged."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str | None = Field(default=None, min_length=1, max_length=255)
    ein: str | None = Field(default=None, max_length=20)
    entity_type: (
        Literal["c-corp", "s-corp", "partnership", "llc", "sole-prop", "nonprofit"]
        | None
    ) = None
    address: str | None = None
    city: str | None = None
    state: str | None = Field(default=None, max_length=2)
    zip_code: str | None = Field(default=None, max_length=10)
    contact_name: str | None = None
    contact_phone: str | None = None
    contact_email: str | None = None
    tax_year_end: str | None = None


class ClientResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    ein: str | None
    entity_type: str | None
    address: str | None
    city: str | None
    state: str | None
    zip_code: str | None
    contact_name: str | None
    contact_phone: str | None
    contact_email: str | None
    tax_year_end: str | None
    created_at: datetime
    updated_at: datetime


# Filing Schemas
class FilingCreate(BaseModel):
    client_id: UUID
    tax_year: int = Field(..., ge=1990, le=2100)


class FilingStatusUpdate(BaseModel):
    status: Literal["draft", "in_progress", "ready", "completed"]


class FilingResponse(BaseModel):
    """Schema for filing response; ``parts`` holds the stored part documents."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    client_id: UUID
    tax_year: int
    dcn: str | None
    change_type: str | None
    status: str
    last_saved_step: str | None
    completion_percentage: int
    parts: dict[str, dict[str, Any]] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime


class FilingSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    client_id: UUID
    tax_year: int
    dcn: str | None
    status: str
    completion_percentage: int
    updated_at: datetime


class ValidationResponse(BaseModel):
    is_valid: bool
    errors: dict[str, str] = Field(default_factory=dict)
    warnings: dict[str, str] = Field(default_factory=dict)


class PartSaveResponse(BaseModel):
    filing: FilingResponse
    part: str
    warnings: dict[str, str] = Field(default_factory=dict)


# DCN Schemas
class DcnResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    dcn_number: str
    description: str
    category: str
    is_automatic: bool
    requires_481a: bool
    spread_period: int | None
    requires_schedule_a: bool
    requires_schedule_b: bool
    requires_schedule_c: bool
    requires_schedule_d: bool
    requires_schedule_e: bool
    rev_proc_section: str | None
    rev_proc: str | None


class RequirementsResponse(BaseModel):
    dcn_number: str | None
    found: bool
    is_automatic: bool
    requires_481a: bool
    spread_period: int | None
    required_schedules: list[str]
    required_parts: list[str]
    reference: DcnResponse | None = None


# Calculation Schemas
class AdjustmentRequest(BaseModel):
    present_method_income: Decimal | None = None
    proposed_method_income: Decimal | None = None
    spread_period: Literal[1, 4] = 1


class AdjustmentResponse(BaseModel):
    present_method_income: str
    proposed_method_income: str
    adjustment_amount: str
    adjustment_direction: str
    spread_period: int
    yearly_amounts: list[str]
    is_large: bool


# Dashboard Schemas
class DashboardResponse(BaseModel):
    total_clients: int
    in_progress_filings: int
    completed_filings: int
    total_filings: int
    recent_filings: list[FilingSummaryResponse]
