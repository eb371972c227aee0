"""Tests for OSV advisory mapping and the HTTP client."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from scanward.dependencies.models import Ecosystem, Exploitability
from scanward.dependencies.osv import (
    OSVClient,
    is_minimal,
    map_osv_vulnerabilities,
    map_osv_vulnerability,
    severity_from_cvss,
)
from scanward.errors import FeedError
from scanward.scanner.models import Severity

LODASH_ADVISORY = {
    "id": "GHSA-35jh-r3h4-6jhm",
    "aliases": ["CVE-2021-23337"],
    "summary": "Command Injection in lodash",
    "published": "2021-02-15T11:15:00Z",
    "modified": "2023-01-01T00:00:00Z",
    "severity": [{"type": "CVSS_V3", "score": "7.2"}],
    "affected": [
        {
            "package": {"name": "lodash", "ecosystem": "npm"},
            "ranges": [
                {
                    "type": "SEMVER",
                    "events": [{"introduced": "0"}, {"fixed": "4.17.21"}],
                }
            ],
        }
    ],
}


class TestMapping:
    def test_prefers_cve_alias(self):
        vuln = map_osv_vulnerability(LODASH_ADVISORY, "lodash", "4.17.10", Ecosystem.NPM)
        assert vuln.vulnerability_id == "CVE-2021-23337"
        assert vuln.id == "lodash_GHSA-35jh-r3h4-6jhm"
        assert vuln.severity == Severity.HIGH
        assert vuln.cvss_score == pytest.approx(7.2)
        assert vuln.exploitability == Exploitability.HIGH
        assert vuln.fixed_in_version == "4.17.21"
        assert vuln.affected_versions == "<4.17.21"
        assert vuln.description == "Command Injection in lodash"
        assert vuln.published_at.year == 2021
        assert vuln.published_at.tzinfo is not None

    def test_ghsa_used_when_no_cve(self):
        raw = {"id": "OSV-2020-1", "aliases": ["GHSA-aaaa-bbbb-cccc"]}
        vuln = map_osv_vulnerability(raw, "pkg", "1.0", Ecosystem.PYPI)
        assert vuln.vulnerability_id == "GHSA-AAAA-BBBB-CCCC"

    def test_plain_osv_id(self):
        vuln = map_osv_vulnerability({"id": "PYSEC-2021-1"}, "pkg", "1.0", Ecosystem.PYPI)
        assert vuln.vulnerability_id == "PYSEC-2021-1"
        # No score and no label
        assert vuln.severity == Severity.MEDIUM
        assert vuln.exploitability == Exploitability.LOW

    def test_severity_label_overrides_score(self):
        raw = {
            "id": "GHSA-x",
            "severity": [{"type": "CVSS_V3", "score": "9.8"}],
            "database_specific": {"severity": "MODERATE"},
        }
        vuln = map_osv_vulnerability(raw, "pkg", "1.0", Ecosystem.NPM)
        assert vuln.severity == Severity.MEDIUM
        assert vuln.cvss_score == pytest.approx(9.8)

    def test_label_supplies_score_when_missing(self):
        raw = {
            "id": "GHSA-y",
            "severity": [
                {"type": "CVSS_V3", "score": "CVSS:3.1/AV:N/AC:L/PR:N/UI:N/S:U/C:H/I:H/A:H"}
            ],
            "database_specific": {"severity": "CRITICAL"},
        }
        vuln = map_osv_vulnerability(raw, "pkg", "1.0", Ecosystem.NPM)
        assert vuln.severity == Severity.CRITICAL
        assert vuln.cvss_score == pytest.approx(9.5)

    def test_introduced_and_fixed_span(self):
        raw = {
            "id": "GHSA-z",
            "affected": [
                {
                    "package": {"name": "log4j-core"},
                    "ranges": [
                        {"events": [{"introduced": "2.0.0"}, {"fixed": "2.15.0"}]},
                        {"events": [{"introduced": "2.16.0"}, {"fixed": "2.17.0"}]},
                    ],
                },
                {"package": {"name": "other"}, "ranges": [{"events": [{"fixed": "9"}]}]},
            ],
        }
        vuln = map_osv_vulnerability(raw, "log4j-core", "2.14.1", Ecosystem.MAVEN)
        assert vuln.affected_versions == "2.0.0-2.15.0, 2.16.0-2.17.0"
        assert vuln.fixed_in_version == "2.15.0"

    def test_sorted_by_severity_then_recency(self):
        raws = [
            {"id": "A", "severity": [{"score": "5.0"}], "published": "2022-01-01T00:00:00Z"},
            {"id": "B", "severity": [{"score": "9.1"}], "published": "2020-01-01T00:00:00Z"},
            {"id": "C", "severity": [{"score": "5.5"}], "published": "2023-01-01T00:00:00Z"},
            "garbage",
        ]
        vulns = map_osv_vulnerabilities(raws, "pkg", "1.0", Ecosystem.NPM)
        assert [v.vulnerability_id for v in vulns] == ["B", "C", "A"]

    def test_severity_from_cvss(self):
        assert severity_from_cvss(9.0) == Severity.CRITICAL
        assert severity_from_cvss(7.0) == Severity.HIGH
        assert severity_from_cvss(4.0) == Severity.MEDIUM
        assert severity_from_cvss(0.5) == Severity.LOW
        assert severity_from_cvss(0) == Severity.MEDIUM

    def test_is_minimal(self):
        assert is_minimal({"id": "X", "modified": "2023-01-01"})
        assert not is_minimal(LODASH_ADVISORY)


def _client(handler) -> OSVClient:
    return OSVClient("https://osv.test", transport=httpx.MockTransport(handler))


class TestClient:
    def test_query_posts_package_and_version(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append((request.url.path, json.loads(request.content)))
            return httpx.Response(200, json={"vulns": [LODASH_ADVISORY]})

        raws = asyncio.run(_client(handler).query("lodash", "4.17.10", Ecosystem.NPM))
        assert raws == [LODASH_ADVISORY]
        assert seen == [
            (
                "/v1/query",
                {"package": {"name": "lodash", "ecosystem": "npm"}, "version": "4.17.10"},
            )
        ]

    def test_query_without_vulns_is_empty(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={})

        assert asyncio.run(_client(handler).query("x", "1", Ecosystem.PYPI)) == []

    def test_query_batch_aligns_results(self):
        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            assert request.url.path == "/v1/querybatch"
            assert [q["package"]["ecosystem"] for q in body["queries"]] == ["PyPI", "PyPI"]
            return httpx.Response(
                200, json={"results": [{"vulns": [{"id": "PYSEC-1"}]}]}
            )

        batches = asyncio.run(
            _client(handler).query_batch(
                [("requests", "2.25.0", Ecosystem.PYPI), ("flask", "2.0", Ecosystem.PYPI)]
            )
        )
        assert batches == [[{"id": "PYSEC-1"}], []]

    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(500, text="boom"),
            httpx.Response(200, text="not json"),
            httpx.Response(200, json=["unexpected"]),
        ],
    )
    def test_bad_responses_raise_feed_error(self, response):
        def handler(request: httpx.Request) -> httpx.Response:
            return response

        with pytest.raises(FeedError):
            asyncio.run(_client(handler).query("x", "1", Ecosystem.NPM))

    def test_transport_error_raises_feed_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(FeedError):
            asyncio.run(_client(handler).query("x", "1", Ecosystem.NPM))
