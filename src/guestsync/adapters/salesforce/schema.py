"""Pydantic models describing the Salesforce REST API payloads."""

from __future__ import annotations

from datetime import date  # noqa: TC003

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class SalesforceBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class TokenResponse(SalesforceBaseModel):
    access_token: str
    instance_url: str | None = None
    token_type: str = "Bearer"


class QueryResponse(SalesforceBaseModel):
    total_size: int = Field(alias="totalSize")
    done: bool
    records: list[dict[str, object]]
    next_records_url: str | None = Field(default=None, alias="nextRecordsUrl")


class ApiError(SalesforceBaseModel):
    message: str
    error_code: str | None = Field(default=None, alias="errorCode")
    fields: list[str] = Field(default_factory=list[str])


class SaveResult(SalesforceBaseModel):
    id: str | None = None
    success: bool
    errors: list[ApiError] = Field(default_factory=list[ApiError])

    @property
    def error_message(self) -> str:
        return ", ".join(error.message for error in self.errors) or "Unknown error"


class ContactRow(SalesforceBaseModel):
    id: str = Field(alias="Id")
    email: str | None = Field(default=None, alias="Email")
    first_name: str | None = Field(default=None, alias="FirstName")
    last_name: str | None = Field(default=None, alias="LastName")

    _normalize_text = field_validator("email", "first_name", "last_name", mode="before")(
        _blank_to_none
    )


class GuestRow(SalesforceBaseModel):
    """Stay record row; the identity lookup field name is configurable and read separately."""

    id: str | None = Field(default=None, alias="Id")
    email: str | None = Field(default=None, alias="Email__c")
    first_name: str | None = Field(default=None, alias="Guest_First_Name__c")
    last_name: str | None = Field(default=None, alias="Guest_Last_Name__c")
    city: str | None = Field(default=None, alias="City__c")
    state: str | None = Field(default=None, alias="State_Province__c")
    country: str | None = Field(default=None, alias="Country__c")
    phone: str | None = Field(default=None, alias="Telephone__c")
    language: str | None = Field(default=None, alias="Language__c")
    check_in: date | None = Field(default=None, alias="Check_In_Date__c")
    check_out: date | None = Field(default=None, alias="Check_Out_Date__c")

    _normalize_text = field_validator(
        "email",
        "first_name",
        "last_name",
        "city",
        "state",
        "country",
        "phone",
        "language",
        "check_in",
        "check_out",
        mode="before",
    )(_blank_to_none)
