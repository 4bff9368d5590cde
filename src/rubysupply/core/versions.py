"""Version constraint matching against catalog versions.

Constraints follow the forms used by buildpack manifests and Gemfiles:

- exact versions: ``"2.6.3"``
- trailing wildcards: ``"1.X.X"``, ``"2.6.x"``, ``"x"``
- comparisons: ``">= 4.1.0.beta1"``, ``"< 2.7"``, ``"!= 2.6.1"``
- pessimistic ranges: ``"~> 2.6.0"``
- conjunctions: ``">= 2.5, < 2.7"``

Ordering is PEP 440 ordering via ``packaging``, which also understands
RubyGems pre-release spellings such as ``4.1.0.beta1``. Manifest versions
that are not PEP 440 (``9.2.13.0-ruby-2.5``) keep their numeric prefix as the
release and carry the remainder as a local label.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable

from packaging.version import InvalidVersion, Version

from rubysupply.core.exceptions import ResolutionError


_OPERATORS = ("~>", ">=", "<=", "!=", ">", "<", "=")
_WILDCARDS = frozenset({"x", "X", "*"})
_RELEASE_PREFIX = re.compile(r"^v?(\d+(?:\.\d+)*)(.*)$")
_LABEL_JUNK = re.compile(r"[^A-Za-z0-9]+")

Predicate = Callable[[Version], bool]


def parse_version(text: str) -> Version:
    """Parse a manifest or gem version into a comparable Version.

    Args:
        text: Version string such as "2.6.3", "4.1.0.beta1" or
            "9.2.13.0-ruby-2.5".

    Returns:
        A packaging Version.

    Raises:
        InvalidVersion: If the string has no leading numeric release.
    """
    text = text.strip()
    try:
        return Version(text)
    except InvalidVersion:
        match = _RELEASE_PREFIX.match(text)
        if match is None:
            raise
        release, rest = match.groups()
        label = _LABEL_JUNK.sub(".", rest).strip(".").lower()
        return Version(f"{release}+{label}" if label else release)


class _Clause:
    """One parsed comparison from a constraint string."""

    __slots__ = ("predicate", "prerelease")

    def __init__(self, predicate: Predicate, prerelease: bool) -> None:
        self.predicate = predicate
        self.prerelease = prerelease


def _release_prefix_matches(prefix: tuple[int, ...]) -> Predicate:
    def check(candidate: Version) -> bool:
        release = candidate.release + (0,) * max(0, len(prefix) - len(candidate.release))
        return release[: len(prefix)] == prefix

    return check


def _parse_wildcard(text: str, raw: str) -> _Clause:
    segments = text.split(".")
    fixed: list[int] = []
    seen_wildcard = False
    for segment in segments:
        if segment in _WILDCARDS:
            seen_wildcard = True
            continue
        # Wildcards may only appear in trailing positions.
        if seen_wildcard or not segment.isdigit():
            raise ResolutionError(raw, message=f"Invalid version constraint: '{raw}'")
        fixed.append(int(segment))
    return _Clause(_release_prefix_matches(tuple(fixed)), prerelease=False)


def _pessimistic_upper(bound: Version) -> Version:
    release = bound.release
    if len(release) == 1:
        return Version(str(release[0] + 1))
    head = list(release[:-1])
    head[-1] += 1
    return Version(".".join(str(part) for part in head))


def _parse_clause(text: str, raw: str) -> _Clause:
    operator = ""
    for candidate in _OPERATORS:
        if text.startswith(candidate):
            operator = candidate
            text = text[len(candidate) :].strip()
            break

    if not text:
        raise ResolutionError(raw, message=f"Invalid version constraint: '{raw}'")

    if any(part in _WILDCARDS for part in text.split(".")):
        if operator:
            raise ResolutionError(raw, message=f"Invalid version constraint: '{raw}'")
        return _parse_wildcard(text, raw)

    try:
        bound = parse_version(text)
    except InvalidVersion:
        raise ResolutionError(
            raw, message=f"Invalid version constraint: '{raw}'"
        ) from None

    predicates: dict[str, Predicate] = {
        "": lambda v: v == bound,
        "=": lambda v: v == bound,
        "!=": lambda v: v != bound,
        ">": lambda v: v > bound,
        ">=": lambda v: v >= bound,
        "<": lambda v: v < bound,
        "<=": lambda v: v <= bound,
    }
    if operator == "~>":
        upper = _pessimistic_upper(bound)
        return _Clause(lambda v: bound <= v < upper, bound.is_prerelease)
    return _Clause(predicates[operator], bound.is_prerelease)


def parse_constraint(constraint: str) -> list[_Clause]:
    """Parse a constraint string into clauses that must all hold.

    Raises:
        ResolutionError: If the constraint is empty or malformed.
    """
    parts = [part.strip() for part in constraint.split(",")]
    if not parts or any(not part for part in parts):
        raise ResolutionError(
            constraint, message=f"Invalid version constraint: '{constraint}'"
        )
    return [_parse_clause(part, constraint) for part in parts]


def _safe_parse(text: str) -> Version | None:
    try:
        return parse_version(text)
    except InvalidVersion:
        return None


def find_matching_version(
    constraint: str,
    candidates: Iterable[str],
    name: str | None = None,
) -> str:
    """Return the highest candidate satisfying ``constraint``.

    Pre-release candidates are only considered when the constraint itself
    names a pre-release. Candidates that cannot be parsed are ignored.

    Args:
        constraint: Constraint string (see module docstring).
        candidates: Available versions, e.g. from the manifest.
        name: Optional dependency name for error messages.

    Returns:
        The matching version string, exactly as it appears in ``candidates``.

    Raises:
        ResolutionError: If nothing matches or the constraint is invalid.

    Example:
        >>> find_matching_version("1.X.X", ["1.17.3", "1.16.6", "2.0.1"])
        '1.17.3'
    """
    versions = list(dict.fromkeys(candidates))
    clauses = parse_constraint(constraint)
    allow_prerelease = any(clause.prerelease for clause in clauses)

    best: tuple[Version, str] | None = None
    for text in versions:
        parsed = _safe_parse(text)
        if parsed is None:
            continue
        if parsed.is_prerelease and not allow_prerelease:
            continue
        if not all(clause.predicate(parsed) for clause in clauses):
            continue
        if best is None or parsed > best[0]:
            best = (parsed, text)

    if best is None:
        raise ResolutionError(constraint, versions, name=name)
    return best[1]


def version_satisfies(version: str, *constraints: str) -> bool:
    """Check a single concrete version against one or more constraints.

    Unlike find_matching_version, a pre-release ``version`` is checked on
    its merits.

    Raises:
        ResolutionError: If a constraint is malformed.
    """
    parsed = _safe_parse(version)
    if parsed is None:
        return False
    for constraint in constraints:
        if not all(clause.predicate(parsed) for clause in parse_constraint(constraint)):
            return False
    return True
