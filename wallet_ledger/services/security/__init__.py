"""PIN hashing services."""

from wallet_ledger.services.security.hasher import BcryptPinHasher, PinHasherInterface

__all__ = ["BcryptPinHasher", "PinHasherInterface"]
