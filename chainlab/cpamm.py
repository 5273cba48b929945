"""
Constant Product Automated Market Maker (CPAMM) over two fungible tokens.

Pricing keeps x * y = k, with a 0.3% fee left in the pool:

    effective_in = amount_in * 997 // 1000
    amount_out   = reserve_out * effective_in // (reserve_in + effective_in)

Reserves are always re-read from the pool's actual token balances after a
call, so tokens sent to the pool directly are absorbed into the reserves.

All arithmetic is integer and every division floors.
"""

import logging
from dataclasses import dataclass, field

from web3 import Web3

from .errors import (
    InsufficientSharesError,
    RatioMismatchError,
    UnknownTokenError,
    ZeroAmountError,
    ZeroOutputError,
)
from .state import assign, atomic, put
from .token import FungibleToken, check_uint256

logger = logging.getLogger(__name__)

FEE_NUMERATOR = 997
FEE_DENOMINATOR = 1000


def sqrt(y: int) -> int:
    """Babylonian integer square root: floor(sqrt(y))."""
    if y > 3:
        z = y
        x = y // 2 + 1
        while x < z:
            z = x
            x = (y // x + x) // 2
        return z
    if y != 0:
        return 1
    return 0


def get_amount_out(reserve_in: int, reserve_out: int, amount_in: int) -> int:
    """Output of an exact-in swap. The fee is applied before the curve division."""
    effective_in = amount_in * FEE_NUMERATOR // FEE_DENOMINATOR
    if effective_in == 0:
        return 0
    return reserve_out * effective_in // (reserve_in + effective_in)


@dataclass
class PoolState:
    reserve0: int = 0
    reserve1: int = 0
    total_supply: int = 0
    shares: dict[str, int] = field(default_factory=dict)


class CPAMM:
    """Two-token pool issuing proportional liquidity shares."""

    def __init__(self, token0: FungibleToken, token1: FungibleToken, address: str):
        self.token0 = token0
        self.token1 = token1
        self.address = Web3.to_checksum_address(address)
        self.state = PoolState()

    @property
    def reserve0(self) -> int:
        return self.state.reserve0

    @property
    def reserve1(self) -> int:
        return self.state.reserve1

    @property
    def total_supply(self) -> int:
        return self.state.total_supply

    def balance_of(self, account: str) -> int:
        return self.state.shares.get(Web3.to_checksum_address(account), 0)

    def _mint(self, to: str, amount: int) -> None:
        to = Web3.to_checksum_address(to)
        put(self.state.shares, to, self.state.shares.get(to, 0) + amount)
        assign(self.state, "total_supply", self.state.total_supply + amount)

    def _burn(self, account: str, amount: int) -> None:
        account = Web3.to_checksum_address(account)
        owned = self.state.shares.get(account, 0)
        if owned < amount:
            raise InsufficientSharesError(f"{account} owns {owned} shares, cannot burn {amount}")
        put(self.state.shares, account, owned - amount)
        assign(self.state, "total_supply", self.state.total_supply - amount)

    def _update(self) -> None:
        assign(self.state, "reserve0", self.token0.balance_of(self.address))
        assign(self.state, "reserve1", self.token1.balance_of(self.address))

    def _orient(self, token_in: str):
        """Return (token_in, token_out, reserve_in, reserve_out) for a swap direction."""
        token_in = Web3.to_checksum_address(token_in)
        if token_in == Web3.to_checksum_address(self.token0.address):
            return self.token0, self.token1, self.state.reserve0, self.state.reserve1
        if token_in == Web3.to_checksum_address(self.token1.address):
            return self.token1, self.token0, self.state.reserve1, self.state.reserve0
        raise UnknownTokenError(f"Token {token_in} is not in this pool")

    def get_amount_out(self, token_in: str, amount_in: int) -> int:
        """Quote a swap against the current reserves without executing it."""
        check_uint256("amount_in", amount_in)
        _, _, reserve_in, reserve_out = self._orient(token_in)
        return get_amount_out(reserve_in, reserve_out, amount_in)

    def swap(self, sender: str, token_in: str, amount_in: int) -> int:
        """Swap ``amount_in`` of ``token_in`` for the other token. Returns the amount paid out."""
        check_uint256("amount_in", amount_in)
        tin, tout, reserve_in, reserve_out = self._orient(token_in)
        if amount_in == 0:
            raise ZeroAmountError("amount in = 0")

        amount_out = get_amount_out(reserve_in, reserve_out, amount_in)
        if amount_out == 0:
            raise ZeroOutputError(f"Swap of {amount_in} yields no output")

        with atomic():
            tin.transfer_from(self.address, sender, self.address, amount_in)
            tout.transfer(self.address, sender, amount_out)
            self._update()

        logger.info(f"Swap: {sender} sold {amount_in} of {tin.address} for {amount_out}")
        return amount_out

    def add_liquidity(self, sender: str, amount0: int, amount1: int) -> int:
        """Deposit both tokens in the current reserve ratio. Returns the shares minted."""
        check_uint256("amount0", amount0)
        check_uint256("amount1", amount1)
        if amount0 == 0 or amount1 == 0:
            raise ZeroAmountError(f"Liquidity amounts must be positive: ({amount0}, {amount1})")

        reserve0, reserve1 = self.state.reserve0, self.state.reserve1
        # Cross-multiplied so no division rounding enters the check
        if (reserve0 > 0 or reserve1 > 0) and reserve0 * amount1 != reserve1 * amount0:
            raise RatioMismatchError(
                f"x / y != dx / dy: reserves ({reserve0}, {reserve1}), amounts ({amount0}, {amount1})"
            )

        total_supply = self.state.total_supply
        if total_supply == 0:
            shares = sqrt(amount0 * amount1)
        else:
            shares = min(amount0 * total_supply // reserve0, amount1 * total_supply // reserve1)
        if shares == 0:
            raise ZeroOutputError("shares = 0")

        with atomic():
            self.token0.transfer_from(self.address, sender, self.address, amount0)
            self.token1.transfer_from(self.address, sender, self.address, amount1)
            self._mint(sender, shares)
            self._update()

        logger.info(f"Liquidity added by {sender}: ({amount0}, {amount1}) -> {shares} shares")
        return shares

    def remove_liquidity(self, sender: str, shares: int) -> tuple[int, int]:
        """Burn ``shares`` and withdraw the pro-rata part of each token balance."""
        check_uint256("shares", shares)
        if shares == 0:
            raise ZeroAmountError("shares = 0")
        owned = self.balance_of(sender)
        if shares > owned:
            raise InsufficientSharesError(f"{sender} owns {owned} shares, cannot remove {shares}")

        # Actual balances, so fees and direct transfers are paid out pro rata
        balance0 = self.token0.balance_of(self.address)
        balance1 = self.token1.balance_of(self.address)
        total_supply = self.state.total_supply
        amount0 = shares * balance0 // total_supply
        amount1 = shares * balance1 // total_supply
        if amount0 == 0 or amount1 == 0:
            raise ZeroOutputError(f"amount0 or amount1 = 0 for {shares} shares")

        with atomic():
            self._burn(sender, shares)
            self.token0.transfer(self.address, sender, amount0)
            self.token1.transfer(self.address, sender, amount1)
            self._update()

        logger.info(f"Liquidity removed by {sender}: {shares} shares -> ({amount0}, {amount1})")
        return amount0, amount1
