"""
Check Definitions

Models the health checks reported by the registry agent, the severity
vocabulary they use, and the predicates used to select them.
"""

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .errors import UnsupportedStatusError


class HealthSeverity(IntEnum):
    """Registry check severity, ordered from best to worst."""
    PASSING = 0
    WARNING = 1
    MAINTENANCE = 2
    CRITICAL = 3

    def __str__(self) -> str:
        return self.name.lower()


class SeverityScale:
    """The set of status strings the registry is expected to report."""

    def __init__(self, name: str, severities: List[HealthSeverity]):
        self.name = name
        self._by_name: Dict[str, HealthSeverity] = {str(s): s for s in severities}

    @property
    def severities(self) -> List[HealthSeverity]:
        return sorted(self._by_name.values())

    def parse(self, raw: str) -> Optional[HealthSeverity]:
        """Exact, case-sensitive lookup. Returns None for unknown strings."""
        return self._by_name.get(raw)

    def __contains__(self, severity: HealthSeverity) -> bool:
        return str(severity) in self._by_name

    def __repr__(self) -> str:
        return f"SeverityScale({self.name!r})"


FOUR_LEVEL = SeverityScale(
    "four-level",
    [HealthSeverity.PASSING, HealthSeverity.WARNING, HealthSeverity.MAINTENANCE, HealthSeverity.CRITICAL],
)

# Deployments whose agents never report maintenance
THREE_LEVEL = SeverityScale(
    "three-level",
    [HealthSeverity.PASSING, HealthSeverity.WARNING, HealthSeverity.CRITICAL],
)

SEVERITY_SCALES: Dict[str, SeverityScale] = {
    FOUR_LEVEL.name: FOUR_LEVEL,
    THREE_LEVEL.name: THREE_LEVEL,
}


def parse_severity(raw: str, scale: SeverityScale = FOUR_LEVEL) -> Optional[HealthSeverity]:
    """Parse a registry status string into a HealthSeverity."""
    return scale.parse(raw)


def get_severity_scale(name: str) -> SeverityScale:
    """Look up a severity scale by name."""
    try:
        return SEVERITY_SCALES[name]
    except KeyError:
        raise ValueError(
            f"Unknown severity scale: {name} (expected one of {', '.join(SEVERITY_SCALES)})"
        ) from None


class CheckStatus(str, Enum):
    """Outcome of comparing a check against a severity threshold."""
    PASSING = "passing"
    WARNING = "warning"
    FAILING = "failing"


class ResultStatus(str, Enum):
    """Overall verdict returned to the caller."""
    OK = "Ok"
    WARNING = "Warning"
    FAILED = "Failed"
    NO_CHECKS = "No Checks"


def classify(severity: HealthSeverity, threshold: HealthSeverity) -> CheckStatus:
    """
    Classify a severity against a threshold.

    Anything at or below the threshold passes. Only the warning tier can
    produce a warning; every other severity above the threshold fails.
    """
    if severity <= threshold:
        return CheckStatus.PASSING
    if severity == HealthSeverity.WARNING:
        return CheckStatus.WARNING
    return CheckStatus.FAILING


# =============================================================================
# Registry records
# =============================================================================

class CheckDefinition(BaseModel):
    """How the registry runs a check. Carried along, never inspected."""
    model_config = ConfigDict(populate_by_name=True)

    http: Optional[str] = Field(None, alias="HTTP")
    header: Optional[Dict[str, List[str]]] = Field(None, alias="Header")
    method: Optional[str] = Field(None, alias="Method")
    tls_skip_verify: Optional[bool] = Field(None, alias="TLSSkipVerify")
    tcp: Optional[str] = Field(None, alias="TCP")
    interval: Optional[Union[str, int]] = Field(None, alias="Interval")
    timeout: Optional[Union[str, int]] = Field(None, alias="Timeout")
    deregister_critical_service_after: Optional[Union[str, int]] = Field(
        None, alias="DeregisterCriticalServiceAfter"
    )


class CheckRecord(BaseModel):
    """A single health check as reported by the registry agent."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    node: str = Field("", alias="Node")
    check_id: str = Field("", alias="CheckID")
    name: str = Field("", alias="Name")
    status: str = Field("", alias="Status")
    notes: str = Field("", alias="Notes")
    output: str = Field("", alias="Output")
    service_id: str = Field("", alias="ServiceID")
    service_name: str = Field("", alias="ServiceName")
    service_tags: Optional[List[str]] = Field(None, alias="ServiceTags")
    definition: Optional[CheckDefinition] = Field(None, alias="Definition", exclude=True)
    create_index: int = Field(0, alias="CreateIndex")
    modify_index: int = Field(0, alias="ModifyIndex")

    def severity(self, scale: SeverityScale = FOUR_LEVEL) -> HealthSeverity:
        """Parse the raw status, raising if the scale does not know it."""
        parsed = scale.parse(self.status)
        if parsed is None:
            raise UnsupportedStatusError(self.status)
        return parsed

    def match_status(
        self,
        threshold: HealthSeverity,
        scale: SeverityScale = FOUR_LEVEL,
    ) -> CheckStatus:
        """Classify this check against a severity threshold."""
        return classify(self.severity(scale), threshold)

    def is_check_id(self, check_id: str) -> bool:
        return check_id == self.check_id

    def is_check_name(self, check_name: str) -> bool:
        return check_name == self.name

    def is_service_id(self, service_id: str) -> bool:
        return service_id == self.service_id

    def is_service_name(self, service_name: str) -> bool:
        return service_name == self.service_name


CheckSet = Mapping[str, CheckRecord]


# =============================================================================
# Matchers
# =============================================================================

@dataclass(frozen=True)
class MatchAll:
    """Selects every check."""

    @property
    def no_checks_message(self) -> str:
        return "No checks"

    def matches(self, check: CheckRecord) -> bool:
        return True


@dataclass(frozen=True)
class MatchCheckId:
    check_id: str

    @property
    def no_checks_message(self) -> str:
        return f"No checks with CheckID: {self.check_id}"

    def matches(self, check: CheckRecord) -> bool:
        return check.is_check_id(self.check_id)


@dataclass(frozen=True)
class MatchCheckName:
    check_name: str

    @property
    def no_checks_message(self) -> str:
        return f"No checks with CheckName: {self.check_name}"

    def matches(self, check: CheckRecord) -> bool:
        return check.is_check_name(self.check_name)


@dataclass(frozen=True)
class MatchServiceId:
    service_id: str

    @property
    def no_checks_message(self) -> str:
        return f"No checks for services with ServiceId: {self.service_id}"

    def matches(self, check: CheckRecord) -> bool:
        return check.is_service_id(self.service_id)


@dataclass(frozen=True)
class MatchServiceName:
    service_name: str

    @property
    def no_checks_message(self) -> str:
        return f"No checks for services with ServiceName: {self.service_name}"

    def matches(self, check: CheckRecord) -> bool:
        return check.is_service_name(self.service_name)


CheckMatcher = Union[MatchAll, MatchCheckId, MatchCheckName, MatchServiceId, MatchServiceName]


# =============================================================================
# Result payload
# =============================================================================

class AggregateResult(BaseModel):
    """Verdict returned by the verify endpoints."""
    model_config = ConfigDict(populate_by_name=True)

    status: ResultStatus = Field(..., alias="Status")
    detail: Optional[str] = Field(None, alias="Detail")
    counts: Optional[Dict[CheckStatus, int]] = Field(None, alias="Counts")
    checks: Optional[Dict[str, CheckRecord]] = Field(None, alias="Checks")

    def to_response(self) -> dict:
        """Render with registry-style field names, dropping empty sections."""
        payload = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        if not payload.get("Checks"):
            payload.pop("Checks", None)
        return payload
