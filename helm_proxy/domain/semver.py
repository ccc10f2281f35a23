"""
Semantic version parsing and range constraints for chart versions.

Versions are parsed loosely ("v1.2", "1", "1.2.3-rc.1+build") into
semver.Version objects. Constraints use the range syntax helm users know:

    >1.0.0            comparison (=, !=, >, <, >=, <=)
    >=1.0.0, <2.0.0   AND (comma or whitespace separated)
    ^1.2 || ~3.1.0    OR groups
    1.2.x, 1.*        wildcards (a missing minor/patch acts as a wildcard)
    1.2 - 1.4.5       hyphen range (inclusive)

A pre-release version only satisfies a term that itself names a pre-release.
"""
from __future__ import annotations

import re
from typing import List, Optional, Tuple

from semver import Version

from helm_proxy.core.errors import InvalidConstraintError


_VERSION_RE = re.compile(
    r"^v?(?P<major>\d+)"
    r"(?:\.(?P<minor>\d+))?"
    r"(?:\.(?P<patch>\d+))?"
    r"(?:-(?P<prerelease>[0-9A-Za-z\-]+(?:\.[0-9A-Za-z\-]+)*))?"
    r"(?:\+(?P<build>[0-9A-Za-z\-]+(?:\.[0-9A-Za-z\-]+)*))?$"
)

_WILDCARDS = ("x", "X", "*")
_PART = r"(?:\d+|[xX*])"
_TERM_RE = re.compile(
    r"(?P<op>!=|>=|=>|<=|=<|~>|[=><~^])?\s*"
    r"(?P<ver>v?" + _PART + r"(?:\." + _PART + r")?(?:\." + _PART + r")?"
    r"(?:-[0-9A-Za-z\-]+(?:\.[0-9A-Za-z\-]+)*)?"
    r"(?:\+[0-9A-Za-z\-]+(?:\.[0-9A-Za-z\-]+)*)?)"
)
_HYPHEN_RE = re.compile(r"(\S+)\s+-\s+(\S+)")

_OP_ALIASES = {"": "=", "=>": ">=", "=<": "<=", "~>": "~"}


class InvalidVersionError(ValueError):
    pass


def parse_version(value: str) -> Version:
    """
    Parse a chart version string.

    Raises InvalidVersionError if the string is not a semantic version.
    """
    m = _VERSION_RE.match((value or "").strip())
    if m is None:
        raise InvalidVersionError(f"invalid semantic version: {value!r}")
    return Version(
        major=int(m.group("major")),
        minor=int(m.group("minor") or 0),
        patch=int(m.group("patch") or 0),
        prerelease=m.group("prerelease"),
    )


def version_sort_key(value: str) -> Tuple:
    """
    Sort key ordering parseable versions by precedence, unparseable ones lowest.
    """
    try:
        return (1, parse_version(value))
    except InvalidVersionError:
        return (0,)


class _Term:
    def __init__(self, op: str, major: Optional[int], minor: Optional[int], patch: Optional[int], prerelease: Optional[str]):
        self.op = op
        self.major = major
        self.minor = minor
        self.patch = patch
        self.prerelease = prerelease

    @property
    def dirty(self) -> bool:
        return self.minor is None or self.patch is None

    @property
    def lower(self) -> Version:
        return Version(self.major or 0, self.minor or 0, self.patch or 0, self.prerelease)

    def _wildcard_upper(self) -> Version:
        if self.minor is None:
            return Version(self.major + 1, 0, 0)
        return Version(self.major, self.minor + 1, 0)

    def _tilde_upper(self) -> Version:
        if self.minor is None:
            return Version(self.major + 1, 0, 0)
        return Version(self.major, self.minor + 1, 0)

    def _caret_upper(self) -> Version:
        if self.major > 0:
            return Version(self.major + 1, 0, 0)
        if self.minor is None:
            return Version(1, 0, 0)
        if self.minor > 0 or self.patch is None:
            return Version(0, self.minor + 1, 0)
        return Version(0, 0, self.patch + 1)

    def _equal(self, v: Version) -> bool:
        if self.dirty:
            return self.lower <= v < self._wildcard_upper()
        return v == self.lower

    def check(self, v: Version) -> bool:
        if v.prerelease and not self.prerelease:
            return False

        if self.major is None:
            return self.op not in ("!=", "<", ">")

        op = self.op
        if op == "=":
            return self._equal(v)
        if op == "!=":
            return not self._equal(v)
        if op == ">":
            return v >= self._wildcard_upper() if self.dirty else v > self.lower
        if op == ">=":
            return v >= self.lower
        if op == "<":
            return v < self.lower
        if op == "<=":
            return v < self._wildcard_upper() if self.dirty else v <= self.lower
        if op == "~":
            return self.lower <= v < self._tilde_upper()
        if op == "^":
            return self.lower <= v < self._caret_upper()
        raise AssertionError(f"unhandled operator {op}")


def _parse_part(raw: Optional[str]) -> Optional[int]:
    if raw is None or raw in _WILDCARDS:
        return None
    return int(raw)


def _parse_term(op: Optional[str], ver: str) -> _Term:
    op = _OP_ALIASES.get(op or "", op or "=")
    ver = ver[1:] if ver.startswith("v") else ver
    ver = ver.split("+", 1)[0]
    core, _, prerelease = ver.partition("-")
    parts = core.split(".")
    parts += [None] * (3 - len(parts))

    major = _parse_part(parts[0])
    minor = None if major is None else _parse_part(parts[1])
    patch = None if minor is None else _parse_part(parts[2])
    return _Term(op, major, minor, patch, prerelease or None)


def _parse_group(text: str) -> List[_Term]:
    text = _HYPHEN_RE.sub(r">=\1 <=\2", text).replace(",", " ")
    terms: List[_Term] = []
    pos = 0
    while pos < len(text):
        if text[pos].isspace():
            pos += 1
            continue
        m = _TERM_RE.match(text, pos)
        if m is None:
            raise ValueError(text[pos:])
        end = m.end()
        if end < len(text) and not text[end].isspace() and text[end] != ",":
            raise ValueError(text[pos:])
        terms.append(_parse_term(m.group("op"), m.group("ver")))
        pos = end
    if not terms:
        raise ValueError("empty constraint group")
    return terms


class Constraint:
    """
    A parsed version range: OR of AND-groups of terms.
    """

    def __init__(self, text: str):
        self.text = text
        try:
            self._groups = [_parse_group(group) for group in text.split("||")]
        except ValueError as e:
            raise InvalidConstraintError(f"an invalid version/constraint format: {text!r} ({e})") from e

    def check(self, version: Version) -> bool:
        return any(all(term.check(version) for term in group) for group in self._groups)

    def __repr__(self) -> str:
        return f"Constraint({self.text!r})"


def parse_constraint(text: str) -> Constraint:
    return Constraint(text)
