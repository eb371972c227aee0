"""Tests for version normalization and range matching."""

from __future__ import annotations

import pytest

from scanward.dependencies.known import lookup_known
from scanward.dependencies.models import Ecosystem
from scanward.dependencies.versions import (
    clean_version,
    compare_versions,
    is_version_vulnerable,
)


@pytest.mark.parametrize(
    "declared,expected",
    [
        ("4.17.10", "4.17.10"),
        ("^4.17.10", "4.17.10"),
        ("~1.2", "1.2"),
        ("==2.25.0", "2.25.0"),
        (">=5.1", "5.1"),
        ("v1.4.0", "1.4.0"),
        ("31.1-jre", "31.1-jre"),
        ("*", None),
        ("latest", None),
    ],
)
def test_clean_version(declared, expected):
    assert clean_version(declared) == expected


def test_compare_versions():
    assert compare_versions("4.17.10", "4.17.12") == -1
    assert compare_versions("4.17.12", "4.17.12") == 0
    assert compare_versions("4.18", "4.17.12") == 1
    assert compare_versions("1.0", "1.0.0") == 0
    assert compare_versions("v2.0.0", "2.0.0") == 0
    assert compare_versions("1.10.0", "1.9.0") == 1


def test_less_than_range():
    assert is_version_vulnerable("4.17.10", "<4.17.12")
    assert not is_version_vulnerable("4.17.12", "<4.17.12")
    assert not is_version_vulnerable("4.18.0", "<4.17.12")


def test_less_or_equal_range():
    assert is_version_vulnerable("1.2.6", "<=1.2.6")
    assert not is_version_vulnerable("1.2.7", "<=1.2.6")


def test_inclusive_span():
    assert is_version_vulnerable("2.0.0", "2.0.0-2.14.1")
    assert is_version_vulnerable("2.14.1", "2.0.0-2.14.1")
    assert is_version_vulnerable("2.10", "2.0.0-2.14.1")
    assert not is_version_vulnerable("2.15.0", "2.0.0-2.14.1")
    assert not is_version_vulnerable("1.9", "2.0.0-2.14.1")


def test_exact_version():
    assert is_version_vulnerable("3.0.0", "3.0.0")
    assert not is_version_vulnerable("3.0.1", "3.0.0")


def test_lookup_known_table():
    found = lookup_known("lodash", "4.17.10", Ecosystem.NPM)
    assert [v.vulnerability_id for v in found] == ["CVE-2021-23337"]
    assert found[0].id == "lodash_CVE-2021-23337"
    assert found[0].version == "4.17.10"
    assert found[0].fixed_in_version == "4.17.12"

    assert lookup_known("lodash", "4.17.12", Ecosystem.NPM) == []
    assert lookup_known("lodash", "4.17.10", Ecosystem.PYPI) == []
    assert [v.vulnerability_id for v in lookup_known("PyYAML", "5.3", Ecosystem.PYPI)] == [
        "CVE-2020-14343"
    ]
