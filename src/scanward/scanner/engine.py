"""Rule engine — runs the SAST catalog over file entities."""

from __future__ import annotations

import asyncio
import hashlib
import logging
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path

from scanward.entities import Entity
from scanward.scanner.models import ScanOptions, SecurityIssue, SecurityRule
from scanward.scanner.rules import SAST_RULES, is_rule_applicable

logger = logging.getLogger(__name__)

SNIPPET_CONTEXT = 2


def fingerprint(entity_id: str, rule_id: str, line_number: int, snippet: str) -> str:
    """Stable issue id for a (file, rule, line, snippet) tuple."""
    digest = hashlib.sha1(
        f"{entity_id}|{rule_id}|{line_number}|{snippet}".encode()
    ).hexdigest()
    return f"sec_{digest}"


def _line_number(content: str, offset: int) -> int:
    return content.count("\n", 0, offset) + 1


def match_rules(
    content: str,
    entity: Entity,
    rules: Iterable[SecurityRule],
    tool: str,
) -> list[SecurityIssue]:
    """Run every rule over raw text and emit one issue per match."""
    issues: list[SecurityIssue] = []
    lines = content.split("\n")

    for rule in rules:
        for match in rule.pattern.finditer(content):
            offset = match.start()
            line_number = _line_number(content, offset)
            line_start = content.rfind("\n", 0, offset) + 1

            lo = max(0, line_number - SNIPPET_CONTEXT - 1)
            hi = min(len(lines), line_number + SNIPPET_CONTEXT)
            snippet = "\n".join(lines[lo:hi])

            issues.append(
                SecurityIssue(
                    id=fingerprint(entity.id, rule.id, line_number, snippet),
                    tool=tool,
                    rule_id=rule.id,
                    severity=rule.severity,
                    title=rule.name,
                    description=rule.description,
                    cwe=rule.cwe,
                    owasp=rule.owasp,
                    affected_entity_id=entity.id,
                    file_path=entity.path,
                    line_number=line_number,
                    column=offset - line_start + 1,
                    code_snippet=snippet,
                    context_before=lines[lo : line_number - 1],
                    context_after=lines[line_number:hi],
                    remediation=rule.remediation,
                    confidence=rule.confidence,
                    category=rule.category,
                    matched_text=match.group(0),
                    tags=rule.tags,
                )
            )

    return issues


def select_rules(
    rules: Iterable[SecurityRule],
    options: ScanOptions,
    file_path: str | None = None,
    applicable: Callable[[SecurityRule, str], bool] | None = None,
) -> list[SecurityRule]:
    """Filter rules by enabled category, thresholds and file type."""
    selected = []
    for rule in rules:
        if not options.category_enabled(rule.category):
            continue
        if not rule.severity.at_least(options.severity_threshold):
            continue
        if rule.confidence < options.confidence_threshold:
            continue
        if file_path is not None and applicable is not None:
            if not applicable(rule, file_path):
                continue
        selected.append(rule)
    return selected


def read_text(path: str, max_size: int) -> str | None:
    """Read a file for scanning, or None if it should be skipped."""
    try:
        file_path = Path(path)
        size = file_path.stat().st_size
        if size > max_size:
            logger.warning(
                "Skipping %s: %d bytes exceeds limit of %d", path, size, max_size
            )
            return None
        return file_path.read_text(encoding="utf-8", errors="replace")
    except (OSError, UnicodeError) as e:
        logger.warning("Skipping unreadable file %s: %s", path, e)
        return None


class CodeScanner:
    """Scans file entities against the SAST rule catalog."""

    tool = "CodeScanner"

    def __init__(self, rules: Sequence[SecurityRule] | None = None) -> None:
        self._rules = list(rules) if rules is not None else list(SAST_RULES)

    @property
    def rules(self) -> list[SecurityRule]:
        return list(self._rules)

    def applicable_rules(
        self, file_path: str, options: ScanOptions
    ) -> list[SecurityRule]:
        return select_rules(self._rules, options, file_path, is_rule_applicable)

    async def scan(
        self, entities: Iterable[Entity], options: ScanOptions
    ) -> list[SecurityIssue]:
        issues: list[SecurityIssue] = []
        for entity in entities:
            if not entity.is_file:
                continue
            rules = self.applicable_rules(entity.path, options)
            if not rules:
                continue
            content = await asyncio.to_thread(
                read_text, entity.path, options.max_file_size
            )
            if content is None:
                continue
            issues.extend(match_rules(content, entity, rules, self.tool))

        logger.debug("%s produced %d issues", self.tool, len(issues))
        return issues
