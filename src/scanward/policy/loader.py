"""Load policy sets and suppressions from YAML/JSON documents."""

from __future__ import annotations

import importlib.resources
import json
import secrets
import time
from dataclasses import dataclass, field
from datetime import datetime, time as dtime, timezone
from pathlib import Path

import yaml

from scanward.errors import PolicyLoadError
from scanward.policy.models import (
    Enforcement,
    PolicyRule,
    SecurityPolicy,
    SecurityPolicySet,
    SuppressionRule,
    SuppressionTarget,
    SuppressionType,
)
from scanward.scanner.models import Category, Severity, utcnow

DEFAULT_PRESET = "default"


@dataclass
class PolicyDocument:
    """Policies and policy sets parsed from one document."""

    policies: dict[str, SecurityPolicy] = field(default_factory=dict)
    policy_sets: dict[str, SecurityPolicySet] = field(default_factory=dict)
    active_policy_set: str | None = None


def _read_mapping(text: str, json_only: bool = False) -> dict:
    try:
        data = json.loads(text) if json_only else yaml.safe_load(text)
    except (ValueError, yaml.YAMLError) as e:
        raise PolicyLoadError(f"Cannot parse document: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise PolicyLoadError("Document root must be a mapping")
    return data


def _as_tuple(value: object) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(v) for v in value)


def _parse_rule(data: dict) -> PolicyRule:
    return PolicyRule(
        id=str(data["id"]),
        name=str(data.get("name", data["id"])),
        category=Category(data.get("category", "sast")),
        severity=Severity.parse(data.get("severity")),
        remediation=str(data.get("remediation", "")),
        tags=_as_tuple(data.get("tags")),
    )


def _parse_policy(data: dict) -> SecurityPolicy:
    try:
        return SecurityPolicy(
            id=str(data["id"]),
            name=str(data.get("name", data["id"])),
            description=str(data.get("description", "")),
            rules=tuple(
                _parse_rule(r) for r in data.get("rules", []) if isinstance(r, dict)
            ),
            enabled=data.get("enabled", True) is not False,
            enforcement=Enforcement(data.get("enforcement", "warning")),
            scope=_as_tuple(data.get("scope")) or ("**/*",),
        )
    except (KeyError, ValueError, TypeError) as e:
        raise PolicyLoadError(f"Invalid policy {data.get('id', '?')}: {e}") from e


def _parse_policy_set(
    data: dict, policies: dict[str, SecurityPolicy]
) -> SecurityPolicySet:
    members: list[SecurityPolicy] = []
    for ref in data.get("policies", []):
        # Members are ids of known policies or inline definitions
        if isinstance(ref, str):
            if ref not in policies:
                raise PolicyLoadError(f"Unknown policy {ref!r} in set {data.get('id')}")
            members.append(policies[ref])
        elif isinstance(ref, dict):
            members.append(policies.get(ref.get("id", "")) or _parse_policy(ref))

    try:
        return SecurityPolicySet(
            id=str(data["id"]),
            name=str(data.get("name", data["id"])),
            description=str(data.get("description", "")),
            policies=tuple(members),
            default_severity_threshold=Severity.parse(
                data.get("defaultSeverityThreshold", "medium")
            ),
            default_confidence_threshold=float(
                data.get("defaultConfidenceThreshold", 0.7)
            ),
        )
    except (KeyError, ValueError, TypeError) as e:
        raise PolicyLoadError(f"Invalid policy set: {e}") from e


def parse_policy_document(
    data: dict, known: PolicyDocument | None = None
) -> PolicyDocument:
    """Build a document, resolving set members against ``known`` too."""
    doc = PolicyDocument()
    available = dict(known.policies) if known else {}

    for entry in data.get("policies") or []:
        if isinstance(entry, dict):
            policy = _parse_policy(entry)
            doc.policies[policy.id] = policy
            available[policy.id] = policy

    for entry in data.get("policySets") or []:
        if isinstance(entry, dict):
            policy_set = _parse_policy_set(entry, available)
            doc.policy_sets[policy_set.id] = policy_set

    active = data.get("activePolicySet")
    doc.active_policy_set = str(active) if active else None
    return doc


def load_policy_document(
    path: str | Path, known: PolicyDocument | None = None
) -> PolicyDocument:
    """Load a policy file (JSON or YAML, chosen by suffix)."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise PolicyLoadError(f"Cannot read policy file {path}: {e}") from e
    data = _read_mapping(text, json_only=path.suffix.lower() == ".json")
    return parse_policy_document(data, known)


def load_preset(name: str = DEFAULT_PRESET) -> PolicyDocument:
    """Load a bundled policy preset by name."""
    pkg = importlib.resources.files("scanward.policy.presets")
    resource = pkg.joinpath(f"{name}.yaml")
    try:
        text = resource.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise PolicyLoadError(f"Unknown policy preset: {name}") from e
    return parse_policy_document(_read_mapping(text))


def parse_until(value: object) -> datetime | None:
    """Expiry timestamp; a bare date means the end of that day (UTC)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip().replace("Z", "+00:00")
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as e:
            raise PolicyLoadError(f"Invalid suppression expiry: {value!r}") from e
        if "T" not in text and " " not in text:
            parsed = datetime.combine(parsed.date(), dtime.max)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def new_suppression_id() -> str:
    return f"supp_{int(time.time() * 1000)}_{secrets.token_hex(5)[:9]}"


def parse_suppression(data: dict) -> SuppressionRule:
    target = data.get("target") or {}
    created_at = data.get("createdAt")
    try:
        return SuppressionRule(
            id=str(data.get("id") or new_suppression_id()),
            type=SuppressionType(data.get("type", "issue")),
            target=SuppressionTarget(
                rule_id=target.get("ruleId"),
                package=target.get("package"),
                vulnerability_id=target.get("vulnerabilityId"),
                path=target.get("path"),
            ),
            until=parse_until(data.get("until")),
            reason=str(data.get("reason") or "No reason provided"),
            created_by=str(data.get("createdBy") or "unknown"),
            created_at=parse_until(created_at) if created_at else utcnow(),
        )
    except (ValueError, AttributeError) as e:
        raise PolicyLoadError(f"Invalid suppression {data.get('id', '?')}: {e}") from e


def suppression_to_dict(rule: SuppressionRule) -> dict:
    target = {
        "ruleId": rule.target.rule_id,
        "package": rule.target.package,
        "vulnerabilityId": rule.target.vulnerability_id,
        "path": rule.target.path,
    }
    return {
        "id": rule.id,
        "type": rule.type.value,
        "target": {k: v for k, v in target.items() if v is not None},
        "until": rule.until.isoformat() if rule.until else None,
        "reason": rule.reason,
        "createdBy": rule.created_by,
        "createdAt": rule.created_at.isoformat(),
    }


def load_suppressions(path: str | Path) -> list[SuppressionRule]:
    """Suppressions from a JSON file; a missing file means none."""
    path = Path(path)
    if not path.exists():
        return []
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise PolicyLoadError(f"Cannot read suppressions {path}: {e}") from e
    data = _read_mapping(text, json_only=True)
    return [
        parse_suppression(entry)
        for entry in data.get("suppressions") or []
        if isinstance(entry, dict)
    ]


def save_suppressions(path: str | Path, rules: list[SuppressionRule]) -> None:
    data = {
        "suppressions": [suppression_to_dict(r) for r in rules],
        "generatedAt": utcnow().isoformat(),
    }
    Path(path).write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
