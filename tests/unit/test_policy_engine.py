"""Tests for policy filtering, suppressions and compliance."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

from scanward.dependencies.models import Ecosystem, Vulnerability
from scanward.policy.engine import PolicyEngine, id_matches, path_matches
from scanward.policy.loader import load_preset, parse_policy_document
from scanward.policy.models import Enforcement, SuppressionTarget, SuppressionType
from scanward.scanner.models import Category, SecurityIssue, Severity

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def _issue(
    rule_id: str = "SQL_INJECTION",
    severity: Severity = Severity.CRITICAL,
    file_path: str = "src/app.js",
    category: Category = Category.SAST,
    issue_id: str = "sec_1",
) -> SecurityIssue:
    return SecurityIssue(
        id=issue_id,
        tool="CodeScanner",
        rule_id=rule_id,
        severity=severity,
        title=rule_id,
        file_path=file_path,
        category=category,
    )


def _vuln(
    package: str = "lodash",
    vuln_id: str = "CVE-2021-23337",
    severity: Severity = Severity.HIGH,
    source_path: str = "package.json",
) -> Vulnerability:
    return Vulnerability(
        id=f"{package}_{vuln_id}",
        package_name=package,
        version="4.17.10",
        ecosystem=Ecosystem.NPM,
        vulnerability_id=vuln_id,
        severity=severity,
        source_path=source_path,
    )


def _engine(**kwargs) -> PolicyEngine:
    return PolicyEngine(load_preset(), clock=lambda: NOW, **kwargs)


class TestPathMatching:
    def test_double_star_matches_root_and_nested(self):
        assert path_matches("**/package.json", "package.json")
        assert path_matches("**/package.json", "web/package.json")
        assert path_matches("**/*", "app.js")
        assert path_matches("src/**", "src/lib/a.js")
        assert not path_matches("src/**", "tests/a.js")
        assert not path_matches("**/pom.xml", "web/package.json")

    def test_windows_separators(self):
        assert path_matches("src/**", "src\\lib\\a.js")


class TestFiltering:
    def test_severity_threshold_from_active_set(self):
        engine = _engine()
        kept = engine.filter_issues(
            [
                _issue(severity=Severity.CRITICAL, issue_id="a"),
                _issue(severity=Severity.MEDIUM, issue_id="b"),
                _issue(severity=Severity.LOW, issue_id="c"),
                _issue(severity=Severity.INFO, issue_id="d"),
            ]
        )
        assert [i.id for i in kept] == ["a", "b"]

    def test_no_active_set_keeps_everything(self):
        engine = _engine()
        assert engine.set_active_policy_set(None)
        assert len(engine.filter_issues([_issue(severity=Severity.INFO)])) == 1
        assert not engine.set_active_policy_set("missing")

    def test_scope_limits_enforcement(self):
        doc = parse_policy_document(
            {
                "policies": [{"id": "src-only", "scope": ["src/**"]}],
                "policySets": [{"id": "narrow", "policies": ["src-only"]}],
                "activePolicySet": "narrow",
            }
        )
        engine = PolicyEngine(doc, clock=lambda: NOW)
        kept = engine.filter_issues(
            [
                _issue(file_path="src/app.js", issue_id="in"),
                _issue(file_path="vendor/lib.js", issue_id="out"),
                _issue(file_path="", issue_id="pathless"),
            ]
        )
        assert [i.id for i in kept] == ["in", "pathless"]

    def test_vulnerability_threshold(self):
        engine = _engine()
        kept = engine.filter_vulnerabilities(
            [_vuln(severity=Severity.HIGH), _vuln(vuln_id="CVE-X", severity=Severity.LOW)]
        )
        assert [v.vulnerability_id for v in kept] == ["CVE-2021-23337"]


class TestSuppressions:
    def test_rule_and_path_suppression(self):
        engine = _engine()
        engine.add_suppression(
            SuppressionType.ISSUE,
            SuppressionTarget(rule_id="SQL_INJECTION", path="tests/**"),
            reason="fixtures",
        )
        assert engine.is_issue_suppressed(_issue(file_path="tests/fixtures/a.js"))
        assert not engine.is_issue_suppressed(_issue(file_path="src/a.js"))
        assert not engine.is_issue_suppressed(
            _issue(rule_id="XSS_VULNERABILITY", file_path="tests/a.js")
        )

    def test_expired_suppression_is_ignored(self):
        engine = _engine()
        engine.add_suppression(
            SuppressionType.ISSUE,
            SuppressionTarget(rule_id="SQL_INJECTION"),
            until=NOW - timedelta(seconds=1),
        )
        assert not engine.is_issue_suppressed(_issue())
        assert len(engine.filter_issues([_issue()])) == 1

    def test_future_expiry_still_applies(self):
        engine = _engine()
        engine.add_suppression(
            SuppressionType.ISSUE,
            SuppressionTarget(rule_id="SQL_INJECTION"),
            until=NOW + timedelta(days=1),
        )
        assert engine.filter_issues([_issue()]) == []

    def test_empty_target_matches_all_of_its_type(self):
        engine = _engine()
        engine.add_suppression(SuppressionType.VULNERABILITY, SuppressionTarget())
        assert engine.is_vulnerability_suppressed(_vuln())
        assert not engine.is_issue_suppressed(_issue())

    def test_vulnerability_by_package_and_id(self):
        engine = _engine()
        engine.add_suppression(
            SuppressionType.VULNERABILITY,
            SuppressionTarget(package="lodash", vulnerability_id="CVE-2021-23337"),
        )
        assert engine.filter_vulnerabilities([_vuln()]) == []
        assert len(engine.filter_vulnerabilities([_vuln(vuln_id="CVE-2020-8203")])) == 1

    def test_remove_suppression(self):
        engine = _engine()
        supp_id = engine.add_suppression(SuppressionType.ISSUE, SuppressionTarget())
        assert supp_id.startswith("supp_")
        assert engine.remove_suppression(supp_id)
        assert not engine.remove_suppression(supp_id)
        assert engine.suppressions == []

    def test_save_and_reload(self, tmp_path: Path):
        path = tmp_path / "supp.json"
        engine = _engine(suppressions_path=path)
        engine.add_suppression(
            SuppressionType.ISSUE,
            SuppressionTarget(rule_id="WEAK_CRYPTO"),
            reason="legacy checksum",
            created_by="ci",
        )
        assert engine.save_suppressions() == path

        reloaded = PolicyEngine.load(suppressions_path=path)
        [rule] = reloaded.suppressions
        assert rule.target.rule_id == "WEAK_CRYPTO"
        assert rule.created_by == "ci"


class TestLoad:
    def test_defaults_without_files(self):
        engine = PolicyEngine.load()
        assert engine.active_policy_set.id == "default"

    def test_custom_policy_file_merges(self, tmp_path: Path):
        path = tmp_path / "policies.json"
        path.write_text(
            json.dumps(
                {
                    "policySets": [
                        {
                            "id": "lenient",
                            "policies": ["owasp-top-10"],
                            "defaultSeverityThreshold": "critical",
                        }
                    ],
                    "activePolicySet": "lenient",
                }
            )
        )
        engine = PolicyEngine.load(policies_path=path)
        assert engine.active_policy_set.id == "lenient"
        assert "secrets-management" in engine.document.policies

    def test_broken_files_keep_defaults(self, tmp_path: Path):
        policies = tmp_path / "policies.yaml"
        policies.write_text("policies: [unclosed")
        suppressions = tmp_path / "supp.json"
        suppressions.write_text("{not json")
        engine = PolicyEngine.load(policies, suppressions)
        assert engine.active_policy_set.id == "default"
        assert engine.suppressions == []

    def test_missing_policy_file_keeps_defaults(self, tmp_path: Path):
        engine = PolicyEngine.load(policies_path=tmp_path / "nope.yaml")
        assert engine.active_policy_set.id == "default"


class TestCompliance:
    def test_critical_sast_issue_violates_blocking_policy(self):
        report = _engine().validate_policy_compliance([_issue()], [])
        assert not report.compliant
        [violation] = report.violations
        assert violation.policy_id == "owasp-top-10"
        assert violation.rule_id == "injection-prevention"
        assert violation.enforcement is Enforcement.BLOCKING
        assert violation.item_id == "sec_1"
        assert report.blocking == [violation]

    def test_high_sast_issue_is_compliant(self):
        report = _engine().validate_policy_compliance(
            [_issue(severity=Severity.HIGH)], []
        )
        assert report.compliant

    def test_secret_issue(self):
        issue = _issue(
            rule_id="SECRET_AWS_ACCESS_KEY",
            category=Category.SECRETS,
            severity=Severity.CRITICAL,
        )
        report = _engine().validate_policy_compliance([issue], [])
        assert [v.policy_id for v in report.violations] == ["secrets-management"]

    def test_vulnerability_matches_rule_of_same_severity(self):
        report = _engine().validate_policy_compliance(
            [], [_vuln(severity=Severity.HIGH), _vuln(vuln_id="CVE-M", severity=Severity.MEDIUM)]
        )
        [violation] = report.violations
        assert violation.rule_id == "no-high-vulnerabilities"
        assert violation.enforcement is Enforcement.WARNING
        assert report.blocking == []
        assert report.to_dict()["violations"][0]["itemId"] == "lodash_CVE-2021-23337"

    def test_no_active_set_is_compliant(self):
        engine = _engine()
        engine.set_active_policy_set(None)
        assert engine.validate_policy_compliance([_issue()], [_vuln()]).compliant


class TestMatchingForms:
    def test_plain_path_matches_as_substring(self):
        assert path_matches("fixtures", "/repo/tests/Fixtures/a.js")
        assert path_matches("SRC/", "src/app.js")
        assert not path_matches("fixtures", "src/app.js")

    def test_regex_path_literal(self):
        assert path_matches(r"/\.spec\.js$/", "src/app.spec.js")
        assert not path_matches(r"/\.spec\.js$/", "src/app.js")
        assert path_matches(r"/^SRC/\S+$/", "src/App.js")
        assert path_matches("/[/", "a/[/b")

    def test_rule_id_regex_literal(self):
        engine = _engine()
        engine.add_suppression(
            SuppressionType.ISSUE, SuppressionTarget(rule_id="/_INJECTION$/")
        )
        assert engine.is_issue_suppressed(_issue(rule_id="SQL_INJECTION"))
        assert engine.is_issue_suppressed(_issue(rule_id="NOSQL_INJECTION"))
        assert not engine.is_issue_suppressed(_issue(rule_id="XSS_VULNERABILITY"))
        assert id_matches("/(/", "/(/")

    def test_package_wildcard_and_case(self):
        engine = _engine()
        engine.add_suppression(
            SuppressionType.VULNERABILITY,
            SuppressionTarget(package="*", vulnerability_id="/^CVE-2021-/"),
        )
        engine.add_suppression(
            SuppressionType.VULNERABILITY, SuppressionTarget(package="MiniMist")
        )
        assert engine.is_vulnerability_suppressed(_vuln())
        assert not engine.is_vulnerability_suppressed(_vuln(vuln_id="CVE-2022-1"))
        assert engine.is_vulnerability_suppressed(
            _vuln(package="minimist", vuln_id="CVE-2022-1")
        )

    def test_paths_relative_to_root(self, tmp_path: Path):
        engine = _engine(root=tmp_path)
        engine.add_suppression(
            SuppressionType.ISSUE, SuppressionTarget(path="tests/*.js")
        )
        inside = str(tmp_path / "tests" / "a.js")
        assert engine.relative_path(inside) == "tests/a.js"
        assert engine.relative_path("/elsewhere/tests/a.js") == "/elsewhere/tests/a.js"
        assert engine.relative_path("tests/a.js") == "tests/a.js"
        assert engine.is_issue_suppressed(_issue(file_path=inside))
        assert not engine.is_issue_suppressed(_issue(file_path="/elsewhere/tests/a.js"))
