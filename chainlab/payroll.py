"""Payroll paid against pay stubs signed off-chain by a director."""

import logging
from dataclasses import dataclass
from typing import Protocol

from web3 import Web3

from .eip712 import TypedDataDomain, TypedDataVerifier
from .errors import InvalidPriceError, PeriodAlreadyClaimedError, ZeroAmountError
from .nonces import OpaqueNonces
from .state import atomic
from .token import FungibleToken
from .types import PayStub

logger = logging.getLogger(__name__)


class PriceFeed(Protocol):
    """Chainlink-style aggregator: ``latest_answer`` is USD per token, scaled by ``decimals``."""

    decimals: int

    def latest_answer(self) -> int: ...


@dataclass
class StaticPriceFeed:
    answer: int
    decimals: int = 8

    def latest_answer(self) -> int:
        return self.answer


def usd_cents_to_token(
    usd_cents: int,
    token_decimals: int,
    price_feed: PriceFeed | None = None,
) -> int:
    """Convert a USD amount in cents to token base units.

    Without a feed the token is treated as pegged to one US dollar.
    """
    if price_feed is None:
        return usd_cents * 10**token_decimals // 100

    answer = price_feed.latest_answer()
    if answer <= 0:
        raise InvalidPriceError(f"Price feed returned {answer}")
    return usd_cents * 10**token_decimals * 10**price_feed.decimals // (100 * answer)


class Payroll:
    """Pays each (employee, period) pay stub at most once."""

    def __init__(
        self,
        director: str,
        token: FungibleToken,
        domain: TypedDataDomain,
        price_feed: PriceFeed | None = None,
    ):
        self.director = Web3.to_checksum_address(director)
        self.token = token
        self.domain = domain
        self.price_feed = price_feed
        self.verifier = TypedDataVerifier(domain)
        self.claimed_periods = OpaqueNonces(error_cls=PeriodAlreadyClaimedError)

    @property
    def address(self) -> str:
        return Web3.to_checksum_address(self.domain.verifying_contract)

    def is_claimed(self, employee: str, period: int) -> bool:
        return self.claimed_periods.is_used(employee, period)

    def claim(self, stub: PayStub, signature: bytes) -> int:
        """Verify a director-signed pay stub and pay the employee.

        Returns the token amount paid. Anyone may relay the stub; the payout
        always goes to ``stub.employee``.
        """
        if stub.usd_amount == 0:
            raise ZeroAmountError("Pay stub amount is zero")
        self.claimed_periods.check(stub.employee, stub.period)
        self.verifier.require_signer(stub, signature, self.director)

        amount = usd_cents_to_token(stub.usd_amount, self.token.decimals, self.price_feed)
        if amount == 0:
            raise ZeroAmountError(f"Pay stub of {stub.usd_amount} cents converts to zero tokens")

        with atomic():
            self.claimed_periods.consume(stub.employee, stub.period)
            self.token.transfer(self.address, stub.employee, amount)

        logger.info(
            f"Paid {amount} to {stub.employee} for period {stub.period} "
            f"({stub.usd_amount} cents)"
        )
        return amount
