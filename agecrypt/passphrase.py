"""
Passphrase resolution for encrypted identity files.

Selecting a getter is a pure function of the caller's explicit choice, the
environment override and the local getter table. Running the getter is the
only side effect, happens at most once per invocation, and only when an
encrypted identity actually needs unlocking.

The resolved passphrase is handed around as a value. It is never written to
the environment and never logged.
"""

from __future__ import annotations

import enum
import logging
import subprocess
from dataclasses import dataclass
from typing import Callable, Mapping, Optional

from .config import ENV_PASSPHRASE_GETTER, IMPLICIT_GETTER
from .exceptions import CommandFailed, EmptyOutput, GetterNotFound, PassphraseGetterError

log = logging.getLogger(__name__)


class GetterSource(enum.Enum):
    ARG = "-g argument"
    ENV_VAR = f"{ENV_PASSPHRASE_GETTER} env var"
    IMPLICIT_SOPS = f"implicit {IMPLICIT_GETTER!r} key in passphrase table"


@dataclass(frozen=True)
class GetterSelection:
    key: str
    source: GetterSource


def select_getter(explicit: Optional[str],
                  override: Optional[str],
                  table: Mapping[str, str]) -> Optional[GetterSelection]:
    """
    Pick the passphrase getter to run, first matching rule wins:

    1. ``explicit`` (``-g <key>``)
    2. ``override`` from the environment; an empty string suppresses rule 3
    3. a getter named ``sops`` in ``table``
    """

    if explicit:
        return GetterSelection(explicit, GetterSource.ARG)

    if override is not None:
        if override == "":
            log.debug("%s is set but empty, suppressing default %s getter",
                      ENV_PASSPHRASE_GETTER, IMPLICIT_GETTER)
            return None
        return GetterSelection(override, GetterSource.ENV_VAR)

    if IMPLICIT_GETTER in table:
        return GetterSelection(IMPLICIT_GETTER, GetterSource.IMPLICIT_SOPS)

    return None


def run_getter(selection: GetterSelection, table: Mapping[str, str]) -> str:
    """
    Run the selected getter command through the shell and return its
    stripped standard output.

    Raises:
        PassphraseGetterError: unknown key, failing command, or empty output
    """

    command = table.get(selection.key)
    if command is None:
        raise GetterNotFound(selection.key, selection.source.value)

    log.debug("Executing passphrase getter %r (triggered by %s)",
              selection.key, selection.source.value)

    try:
        # shell=True so getters can use pipes and compound commands
        result = subprocess.run(command, shell=True, capture_output=True)
    except OSError as e:
        raise CommandFailed(
            f"Failed to execute passphrase getter {selection.key!r} "
            f"(triggered by {selection.source.value}): {e}"
        ) from e

    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        raise CommandFailed(
            f"Passphrase getter {selection.key!r} failed "
            f"(triggered by {selection.source.value})\n"
            f"Command: {command}\n"
            f"Exit code: {result.returncode}\n"
            f"stderr: {stderr}"
        )

    try:
        passphrase = result.stdout.decode("utf-8").strip()
    except UnicodeDecodeError as e:
        raise PassphraseGetterError(
            f"Passphrase getter {selection.key!r} output is not valid UTF-8 "
            f"(triggered by {selection.source.value})"
        ) from e

    if not passphrase:
        raise EmptyOutput(
            f"Passphrase getter {selection.key!r} returned empty output "
            f"(triggered by {selection.source.value})\n"
            f"Command: {command}"
        )

    return passphrase


class PassphraseResolver:
    """
    Holds the passphrase for the lifetime of one invocation.

    A selected getter wins over the direct passphrase.
    """

    def __init__(self,
                 direct: Optional[str] = None,
                 selection: Optional[GetterSelection] = None,
                 table: Optional[Mapping[str, str]] = None,
                 runner: Callable[[GetterSelection, Mapping[str, str]], str] = run_getter):
        self._direct = direct or None
        self.selection = selection
        self._table = dict(table or {})
        self._runner = runner
        self._resolved = False
        self._value: Optional[str] = None

    @classmethod
    def from_sources(cls,
                     explicit: Optional[str],
                     override: Optional[str],
                     direct: Optional[str],
                     table: Mapping[str, str]) -> "PassphraseResolver":
        return cls(
            direct=direct,
            selection=select_getter(explicit, override, table),
            table=table,
        )

    def passphrase(self) -> Optional[str]:
        if not self._resolved:
            if self.selection is not None:
                self._value = self._runner(self.selection, self._table)
            else:
                self._value = self._direct
            self._resolved = True
        return self._value

    def __repr__(self) -> str:
        return f"PassphraseResolver(selection={self.selection!r}, resolved={self._resolved})"
