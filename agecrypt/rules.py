"""
Recipient resolution.

Given a repository-relative path and the policy, this module decides:
- which rules apply, using exact > directory prefix > glob precedence
- which literal recipient keys the file must be encrypted to

Rules DO NOT perform actions. They only return decisions.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import PurePosixPath
from typing import Dict, List, Optional, Tuple

from .exceptions import InvalidPattern, PathNotConfigured
from .manifest import PathRule, Policy


class MatchTier(enum.IntEnum):
    EXACT = 1
    PREFIX = 2
    GLOB = 3


@dataclass(frozen=True)
class RuleDecision:
    path: str
    tier: MatchTier
    patterns: Tuple[str, ...]
    recipients: Tuple[str, ...]


# ---------------------------------------------------------------------------
# Glob matching
# ---------------------------------------------------------------------------


def _check_segment(segment: str, pattern: str) -> None:
    if "**" in segment and segment != "**":
        raise InvalidPattern(pattern, "'**' must be a whole path segment")

    # fnmatch takes an unbalanced '[' literally; reject it instead
    start = segment.find("[")
    while start != -1:
        j = start + 1
        if j < len(segment) and segment[j] == "!":
            j += 1
        if j < len(segment) and segment[j] == "]":
            j += 1
        end = segment.find("]", j)
        if end == -1:
            raise InvalidPattern(pattern, "unbalanced '['")
        start = segment.find("[", end + 1)


def _match_segments(pattern: Tuple[str, ...], parts: Tuple[str, ...]) -> bool:
    if not pattern:
        return not parts

    head, rest = pattern[0], pattern[1:]
    if head == "**":
        return any(_match_segments(rest, parts[i:]) for i in range(len(parts) + 1))
    return bool(parts) and fnmatchcase(parts[0], head) and _match_segments(rest, parts[1:])


@dataclass(frozen=True)
class GlobPattern:
    """
    A path glob matched one ``/``-separated segment at a time.

    ``*``, ``?`` and ``[...]`` are fnmatch rules applied within a segment,
    so they never cross ``/``. A ``**`` segment stands for any number of
    segments, including none.
    """

    pattern: str
    segments: Tuple[str, ...]

    def match(self, path: str) -> bool:
        return _match_segments(self.segments, tuple(path.split("/")))


def compile_glob(pattern: str) -> GlobPattern:
    segments = tuple(pattern.split("/"))
    for seg in segments:
        _check_segment(seg, pattern)
    return GlobPattern(pattern=pattern, segments=segments)


def validate_pattern(pattern: str) -> None:
    if not pattern or not pattern.strip():
        raise InvalidPattern(pattern, "empty pattern")
    if pattern.startswith("/"):
        raise InvalidPattern(pattern, "patterns are relative to the repository root")
    if ".." in PurePosixPath(pattern).parts:
        raise InvalidPattern(pattern, "'..' segments are not allowed")


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class _CompiledRule:
    rule: PathRule
    prefix: str
    glob: GlobPattern


class RuleEngine:
    def __init__(self, policy: Policy):
        self.aliases: Dict[str, str] = dict(policy.aliases)
        self.rules: List[_CompiledRule] = []

        for rule in policy.rules:
            validate_pattern(rule.pattern)
            self.rules.append(
                _CompiledRule(
                    rule=rule,
                    prefix=rule.pattern.rstrip("/") + "/",
                    glob=compile_glob(rule.pattern),
                )
            )

    def _match_tier(self, path: str) -> Optional[Tuple[MatchTier, List[PathRule]]]:
        tiers = (
            (MatchTier.EXACT, lambda c: path == c.rule.pattern),
            (MatchTier.PREFIX, lambda c: path.startswith(c.prefix)),
            (MatchTier.GLOB, lambda c: c.glob.match(path)),
        )
        for tier, test in tiers:
            matched = [c.rule for c in self.rules if test(c)]
            if matched:
                return tier, matched
        return None

    def substitute(self, reference: str) -> str:
        """Map an alias name to its key; anything else is taken as a literal key."""
        return self.aliases.get(reference, reference)

    def resolve(self, path: str) -> RuleDecision:
        """
        Resolve the recipients for ``path``.

        Raises:
            PathNotConfigured: if no rule matches
        """

        path = PurePosixPath(path).as_posix()
        found = self._match_tier(path)
        if found is None:
            raise PathNotConfigured(path)

        tier, matched = found

        # Rules are already in declaration order
        recipients: List[str] = []
        seen = set()
        for rule in matched:
            for ref in rule.recipients:
                key = self.substitute(ref)
                if key not in seen:
                    seen.add(key)
                    recipients.append(key)

        return RuleDecision(
            path=path,
            tier=tier,
            patterns=tuple(r.pattern for r in matched),
            recipients=tuple(recipients),
        )

    def all_recipients(self) -> List[str]:
        """Every distinct recipient referenced by any rule, alias-substituted."""
        out: List[str] = []
        for compiled in self.rules:
            for ref in compiled.rule.recipients:
                key = self.substitute(ref)
                if key not in out:
                    out.append(key)
        return out
