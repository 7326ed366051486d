"""
Wallet PIN Hashing

The ledger never sees a plaintext PIN after the call that supplied it: only
the digest is stored on the wallet. Hashing sits behind a small interface so
tests and alternative backends can swap it out.
"""

from abc import ABC, abstractmethod

import bcrypt


class PinHasherInterface(ABC):
    """Hash and verify short secrets."""

    @abstractmethod
    def hash(self, secret: str) -> str:
        """Return a digest for ``secret``; never the secret itself."""
        pass

    @abstractmethod
    def verify(self, secret: str, digest: str) -> bool:
        """Check ``secret`` against a digest produced by ``hash``."""
        pass


class BcryptPinHasher(PinHasherInterface):
    """bcrypt with a per-digest random salt."""

    def __init__(self, rounds: int = 12):
        self._rounds = rounds

    def hash(self, secret: str) -> str:
        salt = bcrypt.gensalt(rounds=self._rounds)
        return bcrypt.hashpw(secret.encode("utf-8"), salt).decode("utf-8")

    def verify(self, secret: str, digest: str) -> bool:
        try:
            return bcrypt.checkpw(secret.encode("utf-8"), digest.encode("utf-8"))
        except ValueError:
            # Malformed digest
            return False
