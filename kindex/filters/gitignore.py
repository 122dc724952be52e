"""
Gitignore Resolution

Parses .gitignore files (plus the user's global ignore files and
.git/info/exclude) into ordered rules anchored at the directory that
declared them, and exposes them as the highest-priority filter.
"""

import os
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from pathspec.patterns.gitwildmatch import GitWildMatchPattern, GitWildMatchPatternError

from kindex.configs import get_logger
from kindex.filters.base import FilterContext, IndexingFilter, is_within, to_relative

logger = get_logger("filters.gitignore")

GIT_TIMEOUT = 5


@dataclass(frozen=True)
class GitignoreRule:
    """One compiled ignore pattern."""

    pattern: str
    is_negation: bool
    directory_only: bool
    compiled: GitWildMatchPattern
    origin_directory: str
    source_file: Optional[str] = None

    def matches(self, relative_path: str, is_directory: bool) -> bool:
        """
        Test a path relative to ``origin_directory``.

        gitwildmatch patterns also match everything below a matched
        directory. Directory-only rules need the trailing slash, so they
        never match the plain file itself.
        """
        if not relative_path:
            return False
        candidate = relative_path + "/" if is_directory and self.directory_only else relative_path
        return self.compiled.match_file(candidate) is not None


# =============================================================================
# Pattern Compilation
# =============================================================================


def parse_rule(
    line: str,
    origin_directory: str,
    source_file: Optional[str] = None,
) -> Optional[GitignoreRule]:
    """
    Compile one line of an ignore file.

    Args:
        line: Raw line
        origin_directory: Directory the pattern is anchored at
        source_file: File the line came from (for diagnostics)

    Returns:
        GitignoreRule, or None for blank lines, comments and invalid patterns
    """
    line = line.rstrip("\r\n")
    try:
        compiled = GitWildMatchPattern(line)
    except GitWildMatchPatternError as e:
        logger.debug(f"Skipping invalid ignore pattern {line!r} in {source_file}: {e}")
        return None
    if compiled.include is None:
        return None

    pattern = line.strip()
    return GitignoreRule(
        pattern=pattern,
        is_negation=not compiled.include,
        directory_only=pattern.endswith("/") and not pattern.endswith("\\/"),
        compiled=compiled,
        origin_directory=origin_directory,
        source_file=source_file,
    )


def parse_rules(lines: Iterable[str], origin_directory: str, source_file: Optional[str] = None) -> list[GitignoreRule]:
    """Compile every meaningful line of an ignore file."""
    rules = []
    for line in lines:
        rule = parse_rule(line, origin_directory, source_file)
        if rule is not None:
            rules.append(rule)
    return rules


# =============================================================================
# Global Ignore Files
# =============================================================================


def _git_global_excludes_file() -> Optional[str]:
    """Value of ``git config --global core.excludesfile`` if set."""
    try:
        result = subprocess.run(
            ["git", "config", "--global", "--get", "core.excludesfile"],
            capture_output=True,
            text=True,
            timeout=GIT_TIMEOUT,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired, OSError) as e:
        logger.debug(f"git config lookup failed: {e}")
        return None
    value = result.stdout.strip()
    if result.returncode != 0 or not value:
        return None
    return value


def global_ignore_files() -> list[Path]:
    """
    User-level ignore files that exist, in load order.

    Order: core.excludesfile, $XDG_CONFIG_HOME/git/ignore (or
    ~/.config/git/ignore), ~/.gitignore_global, ~/.gitignore.
    """
    home = Path.home()
    candidates: list[Path] = []

    configured = _git_global_excludes_file()
    if configured:
        candidates.append(Path(os.path.expanduser(configured)))

    xdg = os.environ.get("XDG_CONFIG_HOME")
    config_home = Path(xdg) if xdg else home / ".config"
    candidates.append(config_home / "git" / "ignore")
    candidates.append(home / ".gitignore_global")
    candidates.append(home / ".gitignore")

    seen: set[str] = set()
    found = []
    for candidate in candidates:
        key = os.path.abspath(candidate)
        if key in seen:
            continue
        seen.add(key)
        if candidate.is_file():
            found.append(candidate)
    return found


def find_repository_root(start: str) -> Optional[str]:
    """Nearest directory at or above ``start`` containing ``.git``."""
    current = os.path.abspath(start)
    if not os.path.isdir(current):
        current = os.path.dirname(current)
    while True:
        if os.path.exists(os.path.join(current, ".git")):
            return current
        parent = os.path.dirname(current)
        if parent == current:
            return None
        current = parent


# =============================================================================
# Parser
# =============================================================================


class GitignoreParser:
    """
    All ignore rules that apply inside one repository.

    Rules are kept in discovery order: global files, .git/info/exclude, then
    .gitignore files found top-down. The last matching rule decides.
    """

    def __init__(
        self,
        repository_root: str,
        include_global: bool = True,
        global_files: Optional[list[Path]] = None,
    ):
        self.repository_root = os.path.abspath(repository_root)
        self.rules: list[GitignoreRule] = []

        if include_global:
            files = global_files if global_files is not None else global_ignore_files()
            for path in files:
                self._load_file(path, self.repository_root)

        self._load_file(Path(self.repository_root) / ".git" / "info" / "exclude", self.repository_root)
        self._discover()
        logger.debug(f"Loaded {len(self.rules)} ignore rules for {self.repository_root}")

    def _load_file(self, path: Path, origin_directory: str) -> None:
        if not path.is_file():
            return
        try:
            lines = path.read_text(encoding="utf-8", errors="replace").splitlines()
        except OSError as e:
            logger.debug(f"Cannot read {path}: {e}")
            return
        self.rules.extend(parse_rules(lines, origin_directory, str(path)))

    def _discover(self) -> None:
        for dirpath, dirnames, filenames in os.walk(self.repository_root):
            # Load this directory's rules before deciding which children to enter
            if ".gitignore" in filenames:
                self._load_file(Path(dirpath) / ".gitignore", dirpath)
            dirnames[:] = sorted(
                d for d in dirnames if d != ".git" and not self.is_ignored(os.path.join(dirpath, d), True)
            )

    def is_ignored(self, path: str, is_directory: bool) -> bool:
        """
        Whether ``path`` is ignored by the loaded rules.

        Args:
            path: Absolute path inside the repository
            is_directory: Whether the path is a directory

        Returns:
            True if the last matching rule excludes the path
        """
        path = os.path.abspath(path)
        ignored = False
        for rule in self.rules:
            if path == rule.origin_directory or not is_within(path, rule.origin_directory):
                continue
            if rule.matches(to_relative(path, rule.origin_directory), is_directory):
                ignored = not rule.is_negation
        return ignored


# =============================================================================
# Filter
# =============================================================================


class GitignoreFilter(IndexingFilter):
    """Excludes what git would ignore. Parsers are cached per repository root."""

    name = "gitignore"
    priority = 10

    def __init__(self, include_global: bool = True):
        self.include_global = include_global
        self._lock = threading.Lock()
        self._repo_roots: dict[str, str] = {}
        self._parsers: dict[str, GitignoreParser] = {}

    def parser_for(self, source_root: str) -> GitignoreParser:
        """Parser for the repository containing ``source_root``.

        Without an enclosing git repository the source root acts as one.
        """
        source_root = os.path.abspath(source_root)
        with self._lock:
            repo_root = self._repo_roots.get(source_root)
            if repo_root is None:
                repo_root = find_repository_root(source_root) or source_root
                self._repo_roots[source_root] = repo_root

            parser = self._parsers.get(repo_root)
            if parser is None:
                parser = GitignoreParser(repo_root, include_global=self.include_global)
                self._parsers[repo_root] = parser
            return parser

    def invalidate(self) -> None:
        """Forget cached rules, e.g. after a .gitignore changed."""
        with self._lock:
            self._parsers.clear()
            self._repo_roots.clear()

    def should_exclude(self, path: str, is_directory: bool, context: FilterContext) -> bool:
        return self.parser_for(context.root_path).is_ignored(path, is_directory)
