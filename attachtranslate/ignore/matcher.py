# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
import re
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Iterable, Self

DEFAULT_IGNORE_FILE = ".translationignore"


def glob_to_regex(pattern: str) -> str:
    """
    Translate a gitignore glob into a regular expression.

    ``*`` and ``?`` never cross a ``/``; ``**`` spans any number of path segments;
    ``[...]`` is a character class; a backslash escapes the next character.
    """
    out = []
    i = 0
    n = len(pattern)
    while i < n:
        c = pattern[i]
        if c == "*":
            if pattern.startswith("**", i):
                at_start = i == 0 or pattern[i - 1] == "/"
                after = i + 2
                if at_start and after < n and pattern[after] == "/":
                    # "**/" matches zero or more leading directories
                    out.append("(?:.*/)?")
                    i = after + 1
                    continue
                if at_start and after == n:
                    out.append(".*")
                    i = after
                    continue
                out.append(".*")
                i = after
                continue
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "[":
            j = i + 1
            if j < n and pattern[j] in "!^":
                j += 1
            if j < n and pattern[j] == "]":
                j += 1
            while j < n and pattern[j] != "]":
                j += 1
            if j >= n:
                out.append(re.escape(c))
            else:
                body = pattern[i + 1:j]
                if body[:1] in ("!", "^"):
                    body = "^" + body[1:]
                body = body.replace("\\", "\\\\")
                out.append(f"(?!/)[{body}]")
                i = j
        elif c == "\\" and i + 1 < n:
            i += 1
            out.append(re.escape(pattern[i]))
        else:
            out.append(re.escape(c))
        i += 1
    return "".join(out)


@dataclass(frozen=True)
class IgnorePattern:
    raw: str
    regex: re.Pattern
    negated: bool = False
    dir_only: bool = False
    match_basename: bool = False

    @classmethod
    def parse(cls, raw: str) -> Self | None:
        line = raw.strip()
        if not line:
            return None
        pattern = line
        if pattern.startswith(("\\#", "\\!")):
            pattern = pattern[1:]
        elif pattern.startswith("#"):
            return None

        negated = False
        if line.startswith("!"):
            negated = True
            pattern = pattern[1:]
        if not pattern:
            return None

        dir_only = False
        if pattern.endswith("/"):
            dir_only = True
            pattern = pattern.rstrip("/")
            if not pattern:
                return None

        anchored = pattern.startswith("/")
        if anchored:
            pattern = pattern.lstrip("/")

        match_basename = not anchored and "/" not in pattern
        glob = pattern if (match_basename or anchored) else f"**/{pattern}"
        try:
            regex = re.compile(glob_to_regex(glob) + r"\Z", re.DOTALL)
        except re.error as e:
            raise ValueError(f"invalid ignore pattern '{raw}': {e}") from e
        return cls(raw=raw, regex=regex, negated=negated, dir_only=dir_only, match_basename=match_basename)

    def matches(self, rel: str, ancestors: list[str], is_dir: bool = False) -> bool:
        if self.dir_only:
            candidates = list(ancestors)
            if is_dir:
                candidates.append(rel)
            for d in candidates:
                target = d.rsplit("/", 1)[-1] if self.match_basename else d
                if self.regex.match(target):
                    return True
            return False
        target = rel.rsplit("/", 1)[-1] if self.match_basename else rel
        return bool(self.regex.match(target))


def _normalize(relative_path: str | Path) -> str:
    rel = str(relative_path).replace("\\", "/")
    return str(PurePosixPath(rel)).lstrip("/")


def _ancestors(rel: str) -> list[str]:
    parts = rel.split("/")[:-1]
    return ["/".join(parts[:i + 1]) for i in range(len(parts))]


class IgnoreMatcher:
    """
    Gitignore-style path filter. Patterns are evaluated in order and the last match wins.
    """

    def __init__(self, patterns: Iterable[IgnorePattern] = ()):
        self.patterns = list(patterns)

    @classmethod
    def from_lines(cls, lines: Iterable[str]) -> Self:
        compiled = []
        for raw in lines:
            pattern = IgnorePattern.parse(raw)
            if pattern is not None:
                compiled.append(pattern)
        return cls(compiled)

    @classmethod
    def from_root(cls, root: Path | str, ignore_file: str = DEFAULT_IGNORE_FILE,
                  extra_patterns: Iterable[str] = ()) -> Self:
        """Load ``ignore_file`` from the root (when present) followed by any extra patterns."""
        lines: list[str] = []
        candidate = Path(root) / ignore_file
        if candidate.is_file():
            lines.extend(candidate.read_text(encoding="utf-8").splitlines())
        lines.extend(extra_patterns)
        return cls.from_lines(lines)

    def __bool__(self):
        return bool(self.patterns)

    def is_ignored(self, relative_path: str | Path, is_dir: bool = False) -> bool:
        rel = _normalize(relative_path)
        ancestors = _ancestors(rel)
        ignored = False
        for pattern in self.patterns:
            if pattern.matches(rel, ancestors, is_dir=is_dir):
                ignored = not pattern.negated
        return ignored


def is_ignored(relative_path: str | Path, patterns: Iterable[str]) -> bool:
    return IgnoreMatcher.from_lines(patterns).is_ignored(relative_path)
