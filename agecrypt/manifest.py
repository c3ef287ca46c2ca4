"""
Policy and local configuration loading.

This module answers one question:
    "What does the user want the tool to do?"

Responsibilities:
- Load the versioned policy document (``git-agecrypt.toml``)
- Load the unversioned, checkout-local configuration (identities and
  passphrase getters)
- Validate structure and expose a clean Python representation

This module does NOT:
- Match paths against rules
- Encrypt or decrypt data
- Run passphrase getter commands
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .exceptions import ConfigError


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PathRule:
    pattern: str
    recipients: List[str]
    index: int


@dataclass
class Policy:
    aliases: Dict[str, str] = field(default_factory=dict)
    rules: List[PathRule] = field(default_factory=list)

    # ------------------------------------------------------------------
    # Loading API
    # ------------------------------------------------------------------

    @classmethod
    def load(cls, path: str | Path) -> "Policy":
        """
        Load and validate a policy document.

        Args:
            path: Path to the TOML policy file

        Raises:
            ConfigError: if the file is missing or malformed

        Returns:
            Policy
        """

        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Policy file not found: {path}")

        try:
            with path.open("rb") as fh:
                raw = tomllib.load(fh)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid TOML in {path}: {e}") from e

        return cls.from_dict(raw, source=str(path))

    @classmethod
    def from_dict(cls, data: Dict[str, Any], source: str = "<policy>") -> "Policy":
        aliases = cls._parse_aliases(data.get("aliases", {}), source)
        rules = cls._parse_rules(data.get("config", {}), source)
        return cls(aliases=aliases, rules=rules)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_aliases(data: Any, source: str) -> Dict[str, str]:
        if not isinstance(data, dict):
            raise ConfigError(f"[aliases] must be a table in {source}")

        aliases: Dict[str, str] = {}
        for name, key in data.items():
            if not isinstance(key, str):
                raise ConfigError(f"Alias {name!r} must map to a string in {source}")
            aliases[name] = key.strip()
        return aliases

    @staticmethod
    def _parse_rules(data: Any, source: str) -> List[PathRule]:
        if not isinstance(data, dict):
            raise ConfigError(f"[config] must be a table in {source}")

        rules: List[PathRule] = []
        # tomllib keeps document order, which is the tie-break order
        for idx, (pattern, recipients) in enumerate(data.items()):
            if isinstance(recipients, str):
                recipients = [recipients]
            if not isinstance(recipients, list) or not all(isinstance(r, str) for r in recipients):
                raise ConfigError(
                    f"Rule {pattern!r} in {source} must map to a list of strings"
                )
            rules.append(
                PathRule(
                    pattern=pattern,
                    recipients=[r.strip() for r in recipients],
                    index=idx,
                )
            )
        return rules


@dataclass
class LocalConfig:
    """
    Checkout-local settings kept outside version control.

    Example ``.git/git-agecrypt/config.yml``::

        identities:
          - ~/.config/age/keys.txt
        passphrase:
          sops: sops -d --extract '["age"]' secrets.yml
    """

    identities: List[Path] = field(default_factory=list)
    passphrase: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def load(cls, path: str | Path, workdir: Optional[Path] = None) -> "LocalConfig":
        """
        Load the local configuration; a missing file means an empty one.

        Relative identity paths resolve against ``workdir`` when given.
        """

        path = Path(path)
        if not path.exists():
            return cls()

        try:
            with path.open("r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

        if not isinstance(raw, dict):
            raise ConfigError(f"Local configuration must be a mapping: {path}")

        return cls(
            identities=cls._parse_identities(raw.get("identities") or [], path, workdir),
            passphrase=cls._parse_passphrase(raw.get("passphrase") or {}, path),
        )

    @staticmethod
    def _parse_identities(data: Any, source: Path, workdir: Optional[Path]) -> List[Path]:
        if not isinstance(data, list) or not all(isinstance(p, str) for p in data):
            raise ConfigError(f"'identities' must be a list of paths in {source}")

        paths: List[Path] = []
        for raw_path in data:
            p = Path(raw_path).expanduser()
            if not p.is_absolute() and workdir is not None:
                p = workdir / p
            paths.append(p)
        return paths

    @staticmethod
    def _parse_passphrase(data: Any, source: Path) -> Dict[str, str]:
        if not isinstance(data, dict):
            raise ConfigError(f"'passphrase' must be a mapping of name to command in {source}")

        table: Dict[str, str] = {}
        for name, command in data.items():
            if not isinstance(command, str) or not command.strip():
                raise ConfigError(f"Passphrase getter {name!r} must be a non-empty command in {source}")
            table[str(name)] = command
        return table

