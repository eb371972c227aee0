"""Policy engine — suppression, threshold filtering and compliance checks."""

from __future__ import annotations

import fnmatch
import logging
import os
import re
from collections.abc import Callable, Iterable
from datetime import datetime
from pathlib import Path

from scanward.dependencies.models import Vulnerability
from scanward.errors import PolicyLoadError
from scanward.policy.loader import (
    PolicyDocument,
    load_policy_document,
    load_preset,
    load_suppressions,
    new_suppression_id,
    save_suppressions,
)
from scanward.policy.models import (
    ComplianceReport,
    Enforcement,
    PolicyViolation,
    SecurityPolicy,
    SecurityPolicySet,
    SuppressionRule,
    SuppressionTarget,
    SuppressionType,
)
from scanward.scanner.models import Category, SecurityIssue, Severity, utcnow

logger = logging.getLogger(__name__)


def _is_regex_literal(value: str) -> bool:
    return len(value) > 2 and value.startswith("/") and value.endswith("/")


def path_matches(pattern: str, path: str) -> bool:
    """Case-insensitive path match.

    ``/…/`` is a regex searched anywhere in the path. A pattern without
    wildcards matches as a substring. Anything else is a glob, where a
    leading ``**/`` also matches at the root.
    """
    if not pattern or pattern == "*":
        return True
    path = path.replace("\\", "/").lower()
    if _is_regex_literal(pattern):
        try:
            return re.search(pattern[1:-1], path, re.IGNORECASE) is not None
        except re.error:
            logger.warning("Invalid path regex %r, matching as text", pattern)
            return pattern.lower() in path
    pattern = pattern.replace("\\", "/").lower()
    if not any(c in pattern for c in "*?["):
        return pattern in path
    if fnmatch.fnmatchcase(path, pattern):
        return True
    if pattern.startswith("**/"):
        rest = pattern[3:]
        name = path.rsplit("/", 1)[-1]
        return fnmatch.fnmatchcase(path, rest) or fnmatch.fnmatchcase(name, rest)
    return False


def id_matches(expected: str, actual: str) -> bool:
    """Exact match, or a regex search when ``expected`` is ``/…/``."""
    if _is_regex_literal(expected):
        try:
            return re.search(expected[1:-1], actual) is not None
        except re.error:
            logger.warning("Invalid id regex %r, matching exactly", expected)
    return expected == actual


def in_scope(policy: SecurityPolicy, *paths: str) -> bool:
    """True when any of ``paths`` falls in the policy scope; pathless is in scope."""
    paths = tuple(p for p in paths if p)
    if not paths:
        return True
    return any(path_matches(pattern, p) for pattern in policy.scope for p in paths)


class PolicyEngine:
    """Applies the active policy set and suppressions to scan findings."""

    def __init__(
        self,
        document: PolicyDocument | None = None,
        suppressions: Iterable[SuppressionRule] = (),
        suppressions_path: str | Path | None = None,
        clock: Callable[[], datetime] = utcnow,
        root: str | Path | None = None,
    ) -> None:
        self._policies: dict[str, SecurityPolicy] = {}
        self._policy_sets: dict[str, SecurityPolicySet] = {}
        self._active: SecurityPolicySet | None = None
        self._suppressions: list[SuppressionRule] = list(suppressions)
        self._suppressions_path = Path(suppressions_path) if suppressions_path else None
        self._clock = clock
        self.root = Path(root).resolve() if root else None
        if document is not None:
            self.merge(document)

    @classmethod
    def load(
        cls,
        policies_path: str | Path | None = None,
        suppressions_path: str | Path | None = None,
        root: str | Path | None = None,
    ) -> PolicyEngine:
        """Bundled defaults, then the optional policy and suppression files.

        Load failures are logged and the defaults stay in force. Path
        patterns are matched relative to ``root`` when one is given.
        """
        engine = cls(load_preset(), suppressions_path=suppressions_path, root=root)

        if policies_path is not None:
            if Path(policies_path).is_file():
                try:
                    engine.merge(
                        load_policy_document(policies_path, engine.document)
                    )
                    logger.info("Loaded security policies from %s", policies_path)
                except PolicyLoadError as e:
                    logger.error("Failed to load policies from %s: %s", policies_path, e)
            else:
                logger.warning("Policy file not found: %s", policies_path)

        if suppressions_path is not None:
            try:
                engine._suppressions = load_suppressions(suppressions_path)
                logger.info("Loaded %d suppression rules", len(engine._suppressions))
            except PolicyLoadError as e:
                logger.warning(
                    "Failed to load suppression rules from %s: %s", suppressions_path, e
                )

        return engine

    @property
    def document(self) -> PolicyDocument:
        return PolicyDocument(
            policies=dict(self._policies),
            policy_sets=dict(self._policy_sets),
            active_policy_set=self._active.id if self._active else None,
        )

    @property
    def active_policy_set(self) -> SecurityPolicySet | None:
        return self._active

    @property
    def suppressions(self) -> list[SuppressionRule]:
        return list(self._suppressions)

    def merge(self, document: PolicyDocument) -> None:
        self._policies.update(document.policies)
        self._policy_sets.update(document.policy_sets)
        if document.active_policy_set:
            self._active = self._policy_sets.get(document.active_policy_set)
            if self._active is None:
                logger.warning(
                    "Active policy set %r is not defined", document.active_policy_set
                )

    def set_active_policy_set(self, policy_set_id: str | None) -> bool:
        """Switch policy sets; ``None`` disables policy filtering."""
        if policy_set_id is None:
            self._active = None
            return True
        policy_set = self._policy_sets.get(policy_set_id)
        if policy_set is None:
            return False
        self._active = policy_set
        return True

    # -- suppressions -----------------------------------------------------

    def add_suppression(
        self,
        type: SuppressionType,
        target: SuppressionTarget,
        reason: str = "",
        until: datetime | None = None,
        created_by: str = "unknown",
    ) -> str:
        rule = SuppressionRule(
            id=new_suppression_id(),
            type=type,
            target=target,
            until=until,
            reason=reason,
            created_by=created_by,
            created_at=self._clock(),
        )
        self._suppressions.append(rule)
        return rule.id

    def remove_suppression(self, suppression_id: str) -> bool:
        for i, rule in enumerate(self._suppressions):
            if rule.id == suppression_id:
                del self._suppressions[i]
                return True
        return False

    def save_suppressions(self, path: str | Path | None = None) -> Path:
        target = Path(path or self._suppressions_path or ".security-suppressions.json")
        save_suppressions(target, self._suppressions)
        logger.info("Saved %d suppression rules to %s", len(self._suppressions), target)
        return target

    def _active_suppressions(self, kind: SuppressionType) -> list[SuppressionRule]:
        now = self._clock()
        return [
            r for r in self._suppressions if r.type is kind and not r.is_expired(now)
        ]

    def relative_path(self, path: str) -> str:
        """``path`` relative to the scan root, or unchanged when outside it."""
        if not path or self.root is None or not os.path.isabs(path):
            return path
        try:
            return Path(path).resolve().relative_to(self.root).as_posix()
        except ValueError:
            return path

    def _issue_paths(self, issue: SecurityIssue) -> tuple[str, ...]:
        # Entity ids from a directory index are already root-relative
        return (self.relative_path(issue.file_path), issue.affected_entity_id)

    def is_issue_suppressed(self, issue: SecurityIssue) -> bool:
        for rule in self._active_suppressions(SuppressionType.ISSUE):
            t = rule.target
            if t.rule_id and not id_matches(t.rule_id, issue.rule_id):
                continue
            if t.path and not any(
                path_matches(t.path, p) for p in self._issue_paths(issue) if p
            ):
                continue
            return True
        return False

    def is_vulnerability_suppressed(self, vuln: Vulnerability) -> bool:
        for rule in self._active_suppressions(SuppressionType.VULNERABILITY):
            t = rule.target
            if (
                t.package
                and t.package != "*"
                and t.package.lower() != vuln.package_name.lower()
            ):
                continue
            if t.vulnerability_id and not id_matches(
                t.vulnerability_id, vuln.vulnerability_id
            ):
                continue
            if t.path and not path_matches(t.path, self.relative_path(vuln.source_path)):
                continue
            return True
        return False

    # -- filtering --------------------------------------------------------

    def _enforced(self, severity: Severity, *paths: str) -> bool:
        if self._active is None:
            return True
        if not severity.at_least(self._active.default_severity_threshold):
            return False
        return any(in_scope(p, *paths) for p in self._active.enabled_policies)

    def filter_issues(self, issues: Iterable[SecurityIssue]) -> list[SecurityIssue]:
        return [
            issue
            for issue in issues
            if not self.is_issue_suppressed(issue)
            and self._enforced(issue.severity, *self._issue_paths(issue))
        ]

    def filter_vulnerabilities(
        self, vulnerabilities: Iterable[Vulnerability]
    ) -> list[Vulnerability]:
        return [
            vuln
            for vuln in vulnerabilities
            if not self.is_vulnerability_suppressed(vuln)
            and self._enforced(vuln.severity, self.relative_path(vuln.source_path))
        ]

    # -- compliance -------------------------------------------------------

    def validate_policy_compliance(
        self,
        issues: Iterable[SecurityIssue],
        vulnerabilities: Iterable[Vulnerability],
    ) -> ComplianceReport:
        report = ComplianceReport()
        if self._active is None:
            return report

        policies = self._active.enabled_policies
        for issue in issues:
            for policy in policies:
                violation = _check_issue(issue, policy)
                if violation:
                    report.violations.append(violation)
        for vuln in vulnerabilities:
            for policy in policies:
                violation = _check_vulnerability(vuln, policy)
                if violation:
                    report.violations.append(violation)

        report.compliant = not report.violations
        return report


def _check_issue(issue: SecurityIssue, policy: SecurityPolicy) -> PolicyViolation | None:
    blocking = policy.enforcement is Enforcement.BLOCKING
    for rule in policy.rules:
        if (
            rule.category is Category.SAST
            and issue.category is Category.SAST
            and blocking
            and issue.severity is Severity.CRITICAL
        ):
            message = f"Critical security issue violates {policy.name}: {rule.name}"
        elif rule.category is Category.SECRETS and "SECRET" in issue.rule_id and blocking:
            message = f"Hardcoded secret violates {policy.name}: {rule.name}"
        else:
            continue
        return PolicyViolation(
            policy_id=policy.id,
            policy_name=policy.name,
            rule_id=rule.id,
            enforcement=policy.enforcement,
            severity=issue.severity,
            item_id=issue.id,
            message=message,
        )
    return None


def _check_vulnerability(
    vuln: Vulnerability, policy: SecurityPolicy
) -> PolicyViolation | None:
    for rule in policy.rules:
        if rule.category is not Category.DEPENDENCY:
            continue
        if vuln.severity not in (Severity.CRITICAL, Severity.HIGH):
            continue
        if rule.severity is not vuln.severity:
            continue
        return PolicyViolation(
            policy_id=policy.id,
            policy_name=policy.name,
            rule_id=rule.id,
            enforcement=policy.enforcement,
            severity=vuln.severity,
            item_id=vuln.id,
            message=(
                f"{vuln.severity.value.capitalize()} vulnerability "
                f"{vuln.vulnerability_id} in {vuln.package_name} violates "
                f"{policy.name}: {rule.name}"
            ),
        )
    return None
