"""Manifest parsers — one per supported package file.

Each parser takes the file content and its path and returns the declared
direct dependencies. Parsers raise on malformed input; the collector logs
and treats such files as declaring nothing.
"""

from __future__ import annotations

import json
import re
import tomllib
import xml.etree.ElementTree as ET
from collections.abc import Callable
from pathlib import Path

from scanward.dependencies.models import DependencyInfo, DependencyScope, Ecosystem

Parser = Callable[[str, str], list[DependencyInfo]]

ANY_VERSION = "*"


def _dep(
    name: str,
    version: str,
    ecosystem: Ecosystem,
    path: str,
    scope: DependencyScope = DependencyScope.RUNTIME,
) -> DependencyInfo:
    return DependencyInfo(
        name=name.strip(),
        version=version.strip() or ANY_VERSION,
        ecosystem=ecosystem,
        scope=scope,
        path=path,
    )


def _table_version(value: object) -> str:
    """Version from a TOML dependency value: a string or a table."""
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        version = value.get("version")
        if isinstance(version, str):
            return version
    return ANY_VERSION


def parse_package_json(content: str, path: str) -> list[DependencyInfo]:
    pkg = json.loads(content)
    if not isinstance(pkg, dict):
        raise ValueError("package.json root is not an object")

    deps: list[DependencyInfo] = []
    sections = (
        ("dependencies", DependencyScope.RUNTIME),
        ("devDependencies", DependencyScope.DEVELOPMENT),
        ("optionalDependencies", DependencyScope.OPTIONAL),
    )
    for key, scope in sections:
        for name, version in (pkg.get(key) or {}).items():
            deps.append(_dep(name, str(version), Ecosystem.NPM, path, scope))
    return deps


_REQUIREMENT = re.compile(r"^([^>=<!~;\[\s]+)(?:\[[^\]]*\])?\s*([>=<!~][^#;]*)?")


def parse_requirements_txt(content: str, path: str) -> list[DependencyInfo]:
    deps: list[DependencyInfo] = []
    for line in content.splitlines():
        stripped = line.strip()
        # Skip blanks, comments and pip options (-r, -e, --index-url ...)
        if not stripped or stripped.startswith("#") or stripped.startswith("-"):
            continue
        m = _REQUIREMENT.match(stripped)
        if m:
            version = (m.group(2) or "").strip() or ANY_VERSION
            deps.append(_dep(m.group(1), version, Ecosystem.PYPI, path))
    return deps


def parse_pipfile(content: str, path: str) -> list[DependencyInfo]:
    data = tomllib.loads(content)
    deps: list[DependencyInfo] = []
    for section, scope in (
        ("packages", DependencyScope.RUNTIME),
        ("dev-packages", DependencyScope.DEVELOPMENT),
    ):
        for name, value in (data.get(section) or {}).items():
            deps.append(_dep(name, _table_version(value), Ecosystem.PYPI, path, scope))
    return deps


_GEM = re.compile(r"""^gem\s+['"]([^'"]+)['"](?:\s*,\s*['"]([^'"]+)['"])?""")


def parse_gemfile(content: str, path: str) -> list[DependencyInfo]:
    deps: list[DependencyInfo] = []
    for line in content.splitlines():
        m = _GEM.match(line.strip())
        if m:
            deps.append(
                _dep(m.group(1), m.group(2) or ANY_VERSION, Ecosystem.RUBYGEMS, path)
            )
    return deps


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _child_text(elem: ET.Element, name: str) -> str:
    for child in elem:
        if _local(child.tag) == name:
            return (child.text or "").strip()
    return ""


def parse_pom_xml(content: str, path: str) -> list[DependencyInfo]:
    root = ET.fromstring(content)
    deps: list[DependencyInfo] = []
    for elem in root.iter():
        if _local(elem.tag) != "dependency":
            continue
        group = _child_text(elem, "groupId")
        artifact = _child_text(elem, "artifactId")
        if not group or not artifact:
            continue
        scope = (
            DependencyScope.DEVELOPMENT
            if _child_text(elem, "scope") in ("test", "provided")
            else DependencyScope.RUNTIME
        )
        deps.append(
            _dep(
                f"{group}:{artifact}",
                _child_text(elem, "version") or ANY_VERSION,
                Ecosystem.MAVEN,
                path,
                scope,
            )
        )
    return deps


_GRADLE_CONFIG = r"(implementation|api|compile|compileOnly|runtimeOnly|testImplementation|testCompile|testRuntimeOnly|testCompileOnly)"
_GRADLE_STRING = re.compile(
    _GRADLE_CONFIG + r"""\s*\(?\s*['"]([^:'"]+):([^:'"]+):([^'"]+)['"]"""
)
_GRADLE_MAP = re.compile(
    _GRADLE_CONFIG
    + r"""\s*\(?\s*group\s*:\s*['"]([^'"]+)['"]\s*,\s*name\s*:\s*['"]([^'"]+)['"]\s*,\s*version\s*:\s*['"]([^'"]+)['"]"""
)


def parse_build_gradle(content: str, path: str) -> list[DependencyInfo]:
    deps: list[DependencyInfo] = []
    for line in content.splitlines():
        stripped = line.strip()
        m = _GRADLE_STRING.match(stripped) or _GRADLE_MAP.match(stripped)
        if not m:
            continue
        config, group, artifact, version = m.groups()
        scope = (
            DependencyScope.DEVELOPMENT
            if config.startswith("test")
            else DependencyScope.RUNTIME
        )
        deps.append(_dep(f"{group}:{artifact}", version, Ecosystem.MAVEN, path, scope))
    return deps


_GO_REQUIRE = re.compile(r"^(\S+)\s+(v\S+)")


def parse_go_mod(content: str, path: str) -> list[DependencyInfo]:
    deps: list[DependencyInfo] = []
    in_block = False
    for line in content.splitlines():
        stripped = line.strip()
        if stripped.startswith("require (") or stripped == "require(":
            in_block = True
            continue
        if in_block and stripped == ")":
            in_block = False
            continue

        if stripped.startswith("require "):
            spec = stripped[len("require ") :].strip()
        elif in_block:
            spec = stripped
        else:
            continue

        m = _GO_REQUIRE.match(spec)
        if m:
            deps.append(_dep(m.group(1), m.group(2), Ecosystem.GO, path))
    return deps


def parse_cargo_toml(content: str, path: str) -> list[DependencyInfo]:
    data = tomllib.loads(content)
    deps: list[DependencyInfo] = []
    for section, scope in (
        ("dependencies", DependencyScope.RUNTIME),
        ("dev-dependencies", DependencyScope.DEVELOPMENT),
    ):
        for name, value in (data.get(section) or {}).items():
            deps.append(
                _dep(name, _table_version(value), Ecosystem.CARGO, path, scope)
            )
    return deps


def parse_composer_json(content: str, path: str) -> list[DependencyInfo]:
    composer = json.loads(content)
    if not isinstance(composer, dict):
        raise ValueError("composer.json root is not an object")

    deps: list[DependencyInfo] = []
    for name, version in (composer.get("require") or {}).items():
        # Platform requirements, not packages
        if name == "php" or name.startswith("ext-"):
            continue
        deps.append(_dep(name, str(version), Ecosystem.PACKAGIST, path))
    for name, version in (composer.get("require-dev") or {}).items():
        deps.append(
            _dep(
                name,
                str(version),
                Ecosystem.PACKAGIST,
                path,
                DependencyScope.DEVELOPMENT,
            )
        )
    return deps


# Manifest basename → parser
MANIFEST_PARSERS: dict[str, Parser] = {
    "package.json": parse_package_json,
    "requirements.txt": parse_requirements_txt,
    "Pipfile": parse_pipfile,
    "Gemfile": parse_gemfile,
    "pom.xml": parse_pom_xml,
    "build.gradle": parse_build_gradle,
    "go.mod": parse_go_mod,
    "Cargo.toml": parse_cargo_toml,
    "composer.json": parse_composer_json,
}


def is_manifest(path: str) -> bool:
    return Path(path).name in MANIFEST_PARSERS
