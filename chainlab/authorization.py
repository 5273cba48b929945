"""Signature-authorized token operations.

``TransferAuthorizer`` adds gasless transfers (caller-chosen 32-byte nonces
with a validity window) and permits (sequential per-owner nonces with a
deadline) on top of any ``FungibleToken``.
"""

import logging
import time

from .eip712 import TypedDataDomain, TypedDataVerifier
from .errors import AuthorizationExpiredError, AuthorizationNotYetValidError
from .nonces import OpaqueNonces, SequentialNonces
from .state import atomic
from .token import FungibleToken
from .types import CancelAuthorization, Permit, TransferAuthorization

logger = logging.getLogger(__name__)


def check_time_window(now: int, valid_after: int, valid_before: int) -> None:
    """Both boundaries are inclusive."""
    if now < valid_after:
        raise AuthorizationNotYetValidError(f"Authorization is not yet valid: {now} < {valid_after}")
    if now > valid_before:
        raise AuthorizationExpiredError(f"Authorization is expired: {now} > {valid_before}")


class TransferAuthorizer:
    def __init__(self, token: FungibleToken, domain: TypedDataDomain):
        self.token = token
        self.domain = domain
        self.verifier = TypedDataVerifier(domain)
        self.authorizations = OpaqueNonces()
        self.permit_nonces = SequentialNonces()

    def authorization_state(self, authorizer: str, nonce: bytes) -> bool:
        """True once the nonce was used or cancelled."""
        return self.authorizations.is_used(authorizer, nonce)

    def nonces(self, owner: str) -> int:
        return self.permit_nonces.current(owner)

    def transfer_with_authorization(
        self,
        auth: TransferAuthorization,
        signature: bytes,
        now: int | None = None,
    ) -> None:
        """Execute a transfer signed by ``auth.from_``."""
        now = int(time.time()) if now is None else now
        check_time_window(now, auth.valid_after, auth.valid_before)
        self.authorizations.check(auth.from_, auth.nonce)
        self.verifier.require_signer(auth, signature, auth.from_)

        with atomic():
            self.authorizations.consume(auth.from_, auth.nonce)
            self.token.transfer(auth.from_, auth.to, auth.value)

        logger.info(
            f"Authorized transfer: {auth.value} from {auth.from_} to {auth.to} "
            f"(nonce=0x{auth.nonce.hex()[:16]}...)"
        )

    def cancel_authorization(self, cancel: CancelAuthorization, signature: bytes) -> None:
        """Burn an unused nonce so the matching authorization can never execute."""
        self.authorizations.check(cancel.authorizer, cancel.nonce)
        self.verifier.require_signer(cancel, signature, cancel.authorizer)
        self.authorizations.consume(cancel.authorizer, cancel.nonce)
        logger.info(f"Authorization cancelled by {cancel.authorizer}")

    def permit(self, permit: Permit, signature: bytes, now: int | None = None) -> None:
        """Set ``permit.spender``'s allowance over ``permit.owner``'s tokens."""
        now = int(time.time()) if now is None else now
        if now > permit.deadline:
            raise AuthorizationExpiredError(f"Permit deadline passed: {now} > {permit.deadline}")
        self.verifier.require_signer(permit, signature, permit.owner)

        with atomic():
            self.permit_nonces.consume(permit.owner, permit.nonce)
            self.token.approve(permit.owner, permit.spender, permit.value)

        logger.info(f"Permit: {permit.owner} approved {permit.spender} for {permit.value}")
