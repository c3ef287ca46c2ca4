"""
git-agecrypt

Transparent, public-key (age) encryption of selected files in a git
repository. The index and history hold ciphertext; the working tree
holds plaintext.
"""

__version__ = "0.2.0"

from .cache import ContentCache
from .crypto import Recipient, RecipientKind
from .filters import FilterPipeline
from .git import Repository, StagedObjectStore
from .identities import IdentityRing, ValidationState, load_identity, validate
from .manifest import LocalConfig, Policy
from .passphrase import PassphraseResolver, select_getter
from .rules import RuleDecision, RuleEngine

__all__ = [
    "ContentCache",
    "FilterPipeline",
    "IdentityRing",
    "LocalConfig",
    "PassphraseResolver",
    "Policy",
    "Recipient",
    "RecipientKind",
    "Repository",
    "RuleDecision",
    "RuleEngine",
    "StagedObjectStore",
    "ValidationState",
    "load_identity",
    "select_getter",
    "validate",
]
