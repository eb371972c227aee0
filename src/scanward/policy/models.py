"""Policy data models — policy sets, suppressions and compliance results."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime

from scanward.scanner.models import Category, Severity, utcnow


class Enforcement(enum.Enum):
    """How a policy violation affects the build."""

    BLOCKING = "blocking"
    WARNING = "warning"
    INFORMATIONAL = "informational"


class SuppressionType(enum.Enum):
    ISSUE = "issue"
    VULNERABILITY = "vulnerability"


@dataclass(frozen=True)
class PolicyRule:
    """A named check inside a policy, keyed to a scanner category."""

    id: str
    name: str
    category: Category
    severity: Severity
    remediation: str = ""
    tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class SecurityPolicy:
    """A group of rules applied to the paths in ``scope``."""

    id: str
    name: str
    description: str = ""
    rules: tuple[PolicyRule, ...] = ()
    enabled: bool = True
    enforcement: Enforcement = Enforcement.WARNING
    scope: tuple[str, ...] = ("**/*",)


@dataclass(frozen=True)
class SecurityPolicySet:
    """The policies in force together with their default thresholds."""

    id: str
    name: str
    description: str = ""
    policies: tuple[SecurityPolicy, ...] = ()
    default_severity_threshold: Severity = Severity.MEDIUM
    default_confidence_threshold: float = 0.7

    @property
    def enabled_policies(self) -> tuple[SecurityPolicy, ...]:
        return tuple(p for p in self.policies if p.enabled)


@dataclass(frozen=True)
class SuppressionTarget:
    """Fields a suppression matches on; unset fields match anything."""

    rule_id: str | None = None
    package: str | None = None
    vulnerability_id: str | None = None
    path: str | None = None


@dataclass(frozen=True)
class SuppressionRule:
    """Hides matching findings until ``until`` (or forever)."""

    id: str
    type: SuppressionType
    target: SuppressionTarget = field(default_factory=SuppressionTarget)
    until: datetime | None = None
    reason: str = ""
    created_by: str = ""
    created_at: datetime = field(default_factory=utcnow)

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.until is None:
            return False
        return self.until < (now or utcnow())


@dataclass(frozen=True)
class PolicyViolation:
    policy_id: str
    policy_name: str
    rule_id: str
    enforcement: Enforcement
    severity: Severity
    item_id: str
    message: str


@dataclass
class ComplianceReport:
    compliant: bool = True
    violations: list[PolicyViolation] = field(default_factory=list)

    @property
    def blocking(self) -> list[PolicyViolation]:
        return [v for v in self.violations if v.enforcement is Enforcement.BLOCKING]

    def to_dict(self) -> dict:
        return {
            "compliant": self.compliant,
            "violations": [
                {
                    "policyId": v.policy_id,
                    "policyName": v.policy_name,
                    "ruleId": v.rule_id,
                    "enforcement": v.enforcement.value,
                    "severity": v.severity.value,
                    "itemId": v.item_id,
                    "message": v.message,
                }
                for v in self.violations
            ],
        }
