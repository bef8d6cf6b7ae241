"""
Pydantic models for platform API payloads.

Every model accepts unknown fields (extra="allow") so that assets keep
the full document the API returned; only the fields the CLI reasons about
are declared. Response envelopes are unwrapped by the client before
validation.
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


def _as_utc(value: datetime | None) -> datetime | None:
    # timestamps without an offset are UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class ApiModel(BaseModel):
    """Base for API documents: unknown fields are kept, not rejected."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)


# =============================================================================
# Assets
# =============================================================================


class Host(ApiModel):
    ip: str | None = None


class Certificate(ApiModel):
    fingerprint_sha256: str | None = None


class WebProperty(ApiModel):
    """Web property (hostname:port). Only hostname and port are always set."""

    hostname: str | None = None
    port: int | None = None
    endpoints: list[Any] = Field(default_factory=list)
    cert: dict[str, Any] | None = None
    tls: dict[str, Any] | None = None
    jarm: dict[str, Any] | None = None
    software: list[Any] = Field(default_factory=list)
    hardware: list[Any] = Field(default_factory=list)
    operating_systems: list[Any] = Field(default_factory=list)
    vulns: list[Any] = Field(default_factory=list)
    exposures: list[Any] = Field(default_factory=list)
    misconfigs: list[Any] = Field(default_factory=list)
    threats: list[Any] = Field(default_factory=list)
    labels: list[Any] = Field(default_factory=list)

    def has_meaningful_data(self) -> bool:
        """True when any field beyond hostname and port is populated."""
        return bool(
            self.endpoints
            or self.cert is not None
            or self.tls is not None
            or self.jarm is not None
            or self.software
            or self.hardware
            or self.operating_systems
            or self.vulns
            or self.exposures
            or self.misconfigs
            or self.threats
            or self.labels
        )


def webproperty_has_meaningful_data(webproperty: WebProperty | None) -> bool:
    return webproperty is not None and webproperty.has_meaningful_data()


# =============================================================================
# Search
# =============================================================================


class SearchPage(ApiModel):
    hits: list[dict[str, Any]] = Field(default_factory=list)
    total_hits: float = 0
    next_page_token: str | None = None


# =============================================================================
# History
# =============================================================================


class HostTimelinePage(ApiModel):
    """One window of host timeline events, newest first."""

    events: list[dict[str, Any]] = Field(default_factory=list)
    scanned_to: datetime | None = None

    @field_validator("scanned_to")
    @classmethod
    def validate_scanned_to(cls, v: datetime | None) -> datetime | None:
        """Treat a scan position without an offset as UTC."""
        return _as_utc(v)

    def resources(self) -> list[dict[str, Any]]:
        return [event.get("resource", event) for event in self.events]


class ObservationRange(ApiModel):
    ip: str | None = None
    port: int | None = None
    protocol: str | None = None
    transport_protocol: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_times(cls, v: datetime | None) -> datetime | None:
        return _as_utc(v)


class ObservationsPage(ApiModel):
    ranges: list[ObservationRange] = Field(default_factory=list)
    next_page_token: str | None = None


# =============================================================================
# Organizations
# =============================================================================


class MemberCounts(ApiModel):
    total: int | None = None


class OrganizationDetails(ApiModel):
    id: str | None = Field(default=None, alias="uid")
    name: str = ""
    created_at: datetime | None = None
    member_counts: MemberCounts | None = None
    preferences: dict[str, Any] | None = None


class OrganizationMember(ApiModel):
    id: str | None = Field(default=None, alias="uid")
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    roles: list[str] = Field(default_factory=list)
    created_at: datetime | None = None
    latest_login_time: datetime | None = None
    first_login_time: datetime | None = None


class CreditExpiration(ApiModel):
    """A block of credits and when it lapses. Rendered as creation_date/expiration_date."""

    balance: int = 0
    creation_date: datetime | None = Field(
        default=None, validation_alias=AliasChoices("created_at", "creation_date")
    )
    expiration_date: datetime | None = Field(
        default=None, validation_alias=AliasChoices("expires_at", "expiration_date")
    )


class AutoReplenishConfig(ApiModel):
    enabled: bool = False
    threshold: int | None = None
    amount: int | None = None


class OrganizationCredits(ApiModel):
    balance: int = 0
    credit_expirations: list[CreditExpiration] = Field(default_factory=list)
    auto_replenish_config: AutoReplenishConfig = Field(default_factory=AutoReplenishConfig)


class UserCredits(ApiModel):
    """Free-tier credits of the calling user."""

    balance: int = 0
    resets_at: datetime | None = None


class Pagination(ApiModel):
    next_page_token: str | None = None


class MembersPage(ApiModel):
    members: list[OrganizationMember] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)


# =============================================================================
# Aggregation
# =============================================================================


class AggregateBucket(ApiModel):
    key: str = ""
    count: int = 0


class AggregateResponse(ApiModel):
    buckets: list[AggregateBucket] = Field(default_factory=list)


__all__ = [
    "AggregateBucket",
    "AggregateResponse",
    "ApiModel",
    "AutoReplenishConfig",
    "Certificate",
    "CreditExpiration",
    "Host",
    "HostTimelinePage",
    "MemberCounts",
    "MembersPage",
    "ObservationRange",
    "ObservationsPage",
    "OrganizationCredits",
    "OrganizationDetails",
    "OrganizationMember",
    "Pagination",
    "SearchPage",
    "UserCredits",
    "WebProperty",
    "webproperty_has_meaningful_data",
]
