"""Shared fixtures for git-agecrypt tests."""

from pathlib import Path

import pytest
import yaml
from pyrage import passphrase as scrypt
from pyrage import x25519

from agecrypt.cache import ContentCache
from agecrypt.filters import FilterPipeline
from agecrypt.identities import IdentityRing
from agecrypt.manifest import Policy
from agecrypt.passphrase import PassphraseResolver
from agecrypt.rules import RuleEngine


ENV_VARS = ("AGE_PASSPHRASE", "AGE_PASSPHRASE_GETTER", "AGECRYPT_LOG")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class DictStagedStore:
    """In-memory stand-in for the git index."""

    def __init__(self):
        self.objects = {}

    def get(self, path):
        return self.objects.get(path)


def write_identity(directory: Path, name: str, identity) -> Path:
    path = directory / name
    path.write_text(f"# created: test\n# public key: {identity.to_public()}\n{identity}\n")
    return path


def pubkey(identity) -> str:
    return str(identity.to_public())


def write_local_config(path: Path, identities=(), passphrase=None) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    data = {"identities": [str(p) for p in identities], "passphrase": dict(passphrase or {})}
    path.write_text(yaml.safe_dump(data, sort_keys=False))
    return path


# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------

@pytest.fixture
def bob():
    return x25519.Identity.generate()


@pytest.fixture
def alice():
    return x25519.Identity.generate()


@pytest.fixture
def carol():
    return x25519.Identity.generate()


@pytest.fixture(scope="session")
def encrypted_identity():
    """(identity, passphrase, encrypted file bytes); scrypt is slow, so build once."""
    identity = x25519.Identity.generate()
    secret = "correct horse battery staple"
    data = scrypt.encrypt(f"{identity}\n".encode(), secret)
    return identity, secret, data


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

@pytest.fixture
def staged():
    return DictStagedStore()


@pytest.fixture
def cache(tmp_path):
    return ContentCache(tmp_path / "cache")


@pytest.fixture
def make_pipeline(tmp_path, cache, staged):
    """Build a pipeline from a policy dict and identity files."""

    def _make(policy=None, identities=(), resolver=None):
        rules = RuleEngine(Policy.from_dict(policy)) if policy is not None else None
        return FilterPipeline(
            cache=cache,
            staged=staged,
            identities=IdentityRing(identities, resolver or PassphraseResolver()),
            rules=rules,
            policy_path=tmp_path / "missing-policy.toml",
        )

    return _make
