"""
The clean / smudge / textconv filter pipeline.

This module orchestrates recipient resolution, the determinism cache and
identity decryption for one filter invocation. All content is handled as
complete in-memory buffers.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Mapping, Optional

from .cache import ContentCache
from .config import load_direct_passphrase, load_getter_override
from .crypto import Recipient, encrypt
from .exceptions import CacheError, ConfigError, DecryptFailure
from .git import Repository, StagedObjectStore
from .identities import IdentityRing
from .manifest import LocalConfig, Policy
from .passphrase import PassphraseResolver
from .rules import RuleEngine
from .utils import content_hash, is_age_payload, is_scrypt_payload

log = logging.getLogger(__name__)


class FilterPipeline:
    def __init__(
        self,
        cache: ContentCache,
        staged: StagedObjectStore,
        identities: IdentityRing,
        rules: Optional[RuleEngine] = None,
        policy_path: Optional[Path] = None,
    ):
        self.cache = cache
        self.staged = staged
        self.identities = identities
        self.policy_path = policy_path

        # Lazy-loaded so smudge/textconv work without a readable policy
        self._rules = rules

    @classmethod
    def from_repository(
        cls,
        repo: Repository,
        getter_key: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "FilterPipeline":
        """Wire every component for one invocation inside ``repo``."""

        local = LocalConfig.load(repo.local_config_path, workdir=repo.workdir)
        resolver = PassphraseResolver.from_sources(
            explicit=getter_key,
            override=load_getter_override(environ),
            direct=load_direct_passphrase(environ),
            table=local.passphrase,
        )
        return cls(
            cache=ContentCache(repo.cache_dir),
            staged=repo,
            identities=IdentityRing(local.identities, resolver),
            policy_path=repo.policy_path,
        )

    @property
    def rules(self) -> RuleEngine:
        """Load the policy lazily."""
        if self._rules is None:
            if self.policy_path is None:
                raise ConfigError("No policy configured")
            self._rules = RuleEngine(Policy.load(self.policy_path))
        return self._rules

    # ------------------------------------------------------------------
    # Cache helpers
    # ------------------------------------------------------------------

    def _remember(self, path: str, plaintext: bytes, ciphertext: bytes) -> None:
        try:
            self.cache.put(path, content_hash(plaintext), content_hash(ciphertext))
        except CacheError as e:
            log.warning("Could not update cache, next clean will re-encrypt: %s", e)

    def _reusable_ciphertext(self, path: str, digest: str) -> Optional[bytes]:
        entry = self.cache.get(path)
        if entry is None or entry.hash != digest:
            return None

        staged = self.staged.get(path)
        if not staged:
            log.debug("Cache hit but nothing staged, re-encrypting: %s", path)
            return None
        # never hand back something that was staged around the filter
        if not is_age_payload(staged):
            log.debug("Staged object for %s is not age encrypted, ignoring", path)
            return None
        # the index must still hold the ciphertext this plaintext was paired with
        if not entry.matches(digest, content_hash(staged)):
            log.debug("Staged ciphertext for %s is not the cached one, re-encrypting", path)
            return None
        return staged

    # ------------------------------------------------------------------
    # Filter operations
    # ------------------------------------------------------------------

    def clean(self, path: str, plaintext: bytes) -> bytes:
        """Working tree -> index: encrypt, reusing staged ciphertext when unchanged."""

        digest = content_hash(plaintext)

        staged = self._reusable_ciphertext(path, digest)
        if staged is not None:
            log.debug("Unchanged since last clean, reusing staged ciphertext: %s", path)
            return staged

        decision = self.rules.resolve(path)
        log.debug("Resolved %s via %s rule(s) %s", path, decision.tier.name.lower(),
                  ", ".join(decision.patterns))

        ciphertext = encrypt(plaintext, [Recipient.parse(r) for r in decision.recipients])
        self._remember(path, plaintext, ciphertext)
        return ciphertext

    def _decrypt(self, ciphertext: bytes) -> bytes:
        if is_scrypt_payload(ciphertext):
            raise DecryptFailure("Passphrase encrypted files are not supported")
        return self.identities.decrypt(ciphertext)

    def smudge(self, path: str, ciphertext: bytes) -> bytes:
        """Index -> working tree: decrypt and remember which ciphertext the plaintext came from."""

        if not is_age_payload(ciphertext):
            # committed before the path was configured for encryption
            log.info("Not age encrypted, passing through unchanged: %s", path)
            try:
                self.cache.discard(path)
            except CacheError as e:
                log.warning("Could not discard cache entry: %s", e)
            return ciphertext

        plaintext = self._decrypt(ciphertext)
        self._remember(path, plaintext, ciphertext)
        return plaintext

    def textconv(self, ciphertext: bytes) -> bytes:
        """Decrypt for diff/log display; never touches the cache."""

        if not is_age_payload(ciphertext):
            return ciphertext
        return self._decrypt(ciphertext)
