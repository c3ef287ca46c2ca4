"""
age encryption primitives.

Recipients are classified once, when they are parsed, and encryption
dispatches on that classification. This module is intentionally dumb
about policy, identities files and the cache.
"""

from __future__ import annotations

import enum
import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pyrage
from pyrage import plugin, ssh, x25519

from .exceptions import DecryptFailure, EncryptFailure
from .utils import binary_payload

log = logging.getLogger(__name__)

AGE_PREFIX = "age1"
SSH_ED25519_PREFIX = "ssh-ed25519 "


class RecipientKind(enum.Enum):
    AGE = "age"
    SSH_ED25519 = "ssh-ed25519"
    PLUGIN = "plugin"
    RAW = "raw"


@dataclass(frozen=True)
class Recipient:
    kind: RecipientKind
    value: str

    @classmethod
    def parse(cls, value: str) -> "Recipient":
        value = value.strip()
        lowered = value.lower()

        if lowered.startswith(AGE_PREFIX):
            # bech32 data never contains '1', so a later separator means
            # an "age1<plugin>1..." plugin recipient
            if lowered.rfind("1") > len(AGE_PREFIX) - 1:
                return cls(RecipientKind.PLUGIN, value)
            return cls(RecipientKind.AGE, value)
        if value.startswith(SSH_ED25519_PREFIX):
            return cls(RecipientKind.SSH_ED25519, value)
        return cls(RecipientKind.RAW, value)

    @property
    def plugin_name(self) -> Optional[str]:
        if self.kind is not RecipientKind.PLUGIN:
            return None
        lowered = self.value.lower()
        return lowered[len(AGE_PREFIX):lowered.rfind("1")]

    def __str__(self) -> str:
        return self.value


class NoOpCallbacks:
    """Plugin callbacks for non-interactive filter runs: never prompt."""

    def display_message(self, message: str) -> None:
        log.info("plugin: %s", message)

    def confirm(self, message: str, yes_string: str, no_string: Optional[str]) -> Optional[bool]:
        return None

    def request_public_string(self, description: str) -> Optional[str]:
        return None

    def request_passphrase(self, description: str) -> Optional[str]:
        return None


# ---------------------------------------------------------------------------
# Recipient loading
# ---------------------------------------------------------------------------


def _parse_raw(value: str) -> Any:
    for parser in (ssh.Recipient.from_str, x25519.Recipient.from_str):
        try:
            return parser(value)
        except (pyrage.RecipientError, ValueError):
            continue
    raise EncryptFailure(f"Invalid recipient: {value}")


def load_recipients(recipients: Sequence[Recipient]) -> List[Any]:
    """Turn classified recipients into pyrage recipient objects."""

    loaded: List[Any] = []
    plugins: Dict[str, List[Any]] = OrderedDict()

    for recipient in recipients:
        try:
            if recipient.kind is RecipientKind.AGE:
                loaded.append(x25519.Recipient.from_str(recipient.value))
            elif recipient.kind is RecipientKind.SSH_ED25519:
                loaded.append(ssh.Recipient.from_str(recipient.value))
            elif recipient.kind is RecipientKind.PLUGIN:
                plugins.setdefault(recipient.plugin_name, []).append(
                    plugin.Recipient.from_str(recipient.value)
                )
            else:
                loaded.append(_parse_raw(recipient.value))
        except (pyrage.RecipientError, ValueError) as e:
            raise EncryptFailure(f"Invalid {recipient.kind.value} recipient {recipient.value}: {e}") from e

    # one plugin process serves every recipient of that plugin
    for name, plugin_recipients in plugins.items():
        try:
            loaded.append(plugin.RecipientPluginV1(name, plugin_recipients, [], NoOpCallbacks()))
        except (pyrage.RecipientError, ValueError) as e:
            raise EncryptFailure(f"Failed to start age plugin {name!r}: {e}") from e

    return loaded


def validate_recipients(values: Sequence[str]) -> List[Tuple[str, str]]:
    """Return ``(recipient, error)`` for every value that cannot be loaded."""

    problems: List[Tuple[str, str]] = []
    for value in values:
        try:
            load_recipients([Recipient.parse(value)])
        except EncryptFailure as e:
            problems.append((value, str(e)))
    return problems


# ---------------------------------------------------------------------------
# Encrypt / decrypt
# ---------------------------------------------------------------------------


def encrypt(plaintext: bytes, recipients: Sequence[Recipient]) -> bytes:
    """Encrypt ``plaintext`` once, readable by any of ``recipients``."""

    if not recipients:
        raise EncryptFailure("No recipients to encrypt to")

    keys = load_recipients(recipients)
    log.debug("Encrypting %d bytes for %d recipient(s)", len(plaintext), len(keys))
    try:
        return pyrage.encrypt(plaintext, keys)
    except pyrage.EncryptError as e:
        raise EncryptFailure(f"Encryption failed: {e}") from e


def try_decrypt(payload: bytes, keys: Sequence[Any]) -> Optional[bytes]:
    """
    Decrypt ``payload`` with ``keys``.

    Returns None when none of the keys can unwrap the payload.
    """

    raw = binary_payload(payload)
    if raw is None:
        raise DecryptFailure("Input is not an age encrypted payload")
    if not keys:
        return None
    try:
        return pyrage.decrypt(raw, list(keys))
    except pyrage.DecryptError:
        return None
