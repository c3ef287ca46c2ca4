"""
Exceptions for git-agecrypt.

Every class below except :class:`CacheError` is fatal to a filter
invocation. Messages name the offending path or identity file and never
carry passphrase text or key material.
"""

from __future__ import annotations

from typing import Sequence, Tuple


class AgecryptError(Exception):
    """Base class for all errors raised by this package."""


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigError(AgecryptError):
    """The policy document or local configuration is missing or malformed."""


class PathNotConfigured(ConfigError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"No recipients configured for path: {path}")


class InvalidPattern(ConfigError):
    def __init__(self, pattern: str, reason: str):
        self.pattern = pattern
        self.reason = reason
        super().__init__(f"Invalid path pattern {pattern!r}: {reason}")


# ---------------------------------------------------------------------------
# Identities
# ---------------------------------------------------------------------------


class IdentityError(AgecryptError):
    def __init__(self, path: str, detail: str):
        self.path = path
        super().__init__(f"{detail}: {path}")


class IdentityParseError(IdentityError):
    def __init__(self, path: str, detail: str = "Not a plaintext or passphrase-encrypted identity file"):
        super().__init__(path, detail)


class IdentityDecryptError(IdentityError):
    """Wrong passphrase or corrupt encrypted identity."""

    def __init__(self, path: str):
        super().__init__(path, "Failed to decrypt identity file (wrong passphrase or corrupt file)")


class NoPassphraseAvailable(IdentityError):
    def __init__(self, path: str):
        super().__init__(path, "No passphrase available to decrypt identity file")


# ---------------------------------------------------------------------------
# Passphrase getters
# ---------------------------------------------------------------------------


class PassphraseGetterError(AgecryptError):
    """A passphrase getter could not produce a passphrase."""


class GetterNotFound(PassphraseGetterError):
    def __init__(self, key: str, source: str):
        self.key = key
        super().__init__(
            f"Passphrase getter {key!r} not found in local [passphrase] table "
            f"(triggered by {source})"
        )


class CommandFailed(PassphraseGetterError):
    pass


class EmptyOutput(PassphraseGetterError):
    pass


# ---------------------------------------------------------------------------
# Encryption / decryption
# ---------------------------------------------------------------------------


class CryptoError(AgecryptError):
    pass


class EncryptFailure(CryptoError):
    pass


class DecryptFailure(CryptoError):
    pass


class NoMatchingIdentity(DecryptFailure):
    def __init__(self, identities: Sequence[str],
                 skipped: Sequence[Tuple[str, str]] = ()):
        self.identities = list(identities)
        self.skipped = list(skipped)

        if not self.identities:
            msg = "Failed to decrypt: no identities configured"
        else:
            msg = (
                "Failed to decrypt: no matching identity found. "
                f"Configured identities: [{', '.join(self.identities)}]"
            )
        if self.skipped:
            details = "; ".join(f"{path} ({reason})" for path, reason in self.skipped)
            msg += f". Skipped: {details}"
        super().__init__(msg)


# ---------------------------------------------------------------------------
# Cache (never fatal)
# ---------------------------------------------------------------------------


class CacheError(AgecryptError):
    pass


class CacheIOError(CacheError):
    pass


class CacheCorrupt(CacheError):
    pass
