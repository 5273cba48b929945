"""Replay protection for signed authorizations.

Two policies are supported:

- ``SequentialNonces``: one counter per signer. A signature is only valid for
  the counter value current at verification time, and using it bumps the
  counter (EIP-2612 permits).
- ``OpaqueNonces``: the signer picks any value per authorization and each
  ``(signer, nonce)`` pair is a one-shot latch (EIP-3009 authorizations,
  payroll periods).
"""

from dataclasses import dataclass, field
from typing import Hashable

from web3 import Web3

from .errors import InvalidNonceError, NonceAlreadyUsedError
from .state import add, put


@dataclass
class SequentialNonceState:
    counters: dict[str, int] = field(default_factory=dict)


class SequentialNonces:
    def __init__(self):
        self.state = SequentialNonceState()

    def current(self, signer: str) -> int:
        return self.state.counters.get(Web3.to_checksum_address(signer), 0)

    def consume(self, signer: str, nonce: int) -> None:
        """Accept ``nonce`` only if it is the signer's current one, then advance."""
        expected = self.current(signer)
        if nonce != expected:
            raise InvalidNonceError(f"Invalid nonce for {signer}: got {nonce}, expected {expected}")
        put(self.state.counters, Web3.to_checksum_address(signer), expected + 1)


@dataclass
class OpaqueNonceState:
    used: set = field(default_factory=set)


class OpaqueNonces:
    def __init__(self, error_cls=NonceAlreadyUsedError):
        self.state = OpaqueNonceState()
        self.error_cls = error_cls

    def _key(self, signer: str, nonce: Hashable) -> tuple:
        if isinstance(nonce, (bytes, bytearray)):
            if len(nonce) != 32:
                raise ValueError(f"nonce must be 32 bytes, got {len(nonce)}")
            nonce = bytes(nonce)
        return Web3.to_checksum_address(signer), nonce

    def is_used(self, signer: str, nonce: Hashable) -> bool:
        return self._key(signer, nonce) in self.state.used

    def check(self, signer: str, nonce: Hashable) -> None:
        if self.is_used(signer, nonce):
            shown = nonce.hex() if isinstance(nonce, (bytes, bytearray)) else nonce
            raise self.error_cls(f"Nonce {shown} already used by {signer}")

    def consume(self, signer: str, nonce: Hashable) -> None:
        """Mark ``(signer, nonce)`` used. There is no transition back."""
        self.check(signer, nonce)
        add(self.state.used, self._key(signer, nonce))
