"""Minimal ERC-20 style ledger used by the payroll, authorization and pool components."""

import logging
from dataclasses import dataclass, field
from typing import Protocol

from web3 import Web3

from .errors import InsufficientAllowanceError, InsufficientBalanceError
from .state import assign, put

logger = logging.getLogger(__name__)

MAX_UINT256 = 2**256 - 1


class FungibleToken(Protocol):
    """Balance query and move semantics the other components rely on."""

    address: str
    decimals: int

    def balance_of(self, account: str) -> int: ...

    def transfer(self, sender: str, to: str, amount: int) -> None: ...

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> None: ...

    def approve(self, owner: str, spender: str, amount: int) -> None: ...

    def allowance(self, owner: str, spender: str) -> int: ...


def check_uint256(name: str, value: int) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"{name} must be an int, got {type(value).__name__}")
    if value < 0 or value > MAX_UINT256:
        raise ValueError(f"{name} out of uint256 range: {value}")
    return value


@dataclass
class TokenState:
    total_supply: int = 0
    balances: dict[str, int] = field(default_factory=dict)
    allowances: dict[tuple[str, str], int] = field(default_factory=dict)


class Token:
    """ERC-20 ledger. Callers pass the acting account explicitly."""

    def __init__(self, name: str, symbol: str, address: str, decimals: int = 18):
        self.name = name
        self.symbol = symbol
        self.address = Web3.to_checksum_address(address)
        self.decimals = decimals
        self.state = TokenState()

    def balance_of(self, account: str) -> int:
        return self.state.balances.get(Web3.to_checksum_address(account), 0)

    def allowance(self, owner: str, spender: str) -> int:
        key = (Web3.to_checksum_address(owner), Web3.to_checksum_address(spender))
        return self.state.allowances.get(key, 0)

    def total_supply(self) -> int:
        return self.state.total_supply

    def _move(self, sender: str, to: str, amount: int) -> None:
        check_uint256("amount", amount)
        sender = Web3.to_checksum_address(sender)
        to = Web3.to_checksum_address(to)
        balance = self.state.balances.get(sender, 0)
        if balance < amount:
            raise InsufficientBalanceError(
                f"{self.symbol}: balance of {sender} is {balance}, needs {amount}"
            )
        put(self.state.balances, sender, balance - amount)
        put(self.state.balances, to, self.state.balances.get(to, 0) + amount)

    def transfer(self, sender: str, to: str, amount: int) -> None:
        self._move(sender, to, amount)

    def approve(self, owner: str, spender: str, amount: int) -> None:
        check_uint256("amount", amount)
        key = (Web3.to_checksum_address(owner), Web3.to_checksum_address(spender))
        put(self.state.allowances, key, amount)

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> None:
        check_uint256("amount", amount)
        current = self.allowance(owner, spender)
        if current < amount:
            raise InsufficientAllowanceError(
                f"{self.symbol}: allowance of {spender} over {owner} is {current}, needs {amount}"
            )
        self._move(owner, to, amount)
        # Infinite approvals are never decremented
        if current != MAX_UINT256:
            self.approve(owner, spender, current - amount)

    def mint(self, to: str, amount: int) -> None:
        check_uint256("amount", amount)
        to = Web3.to_checksum_address(to)
        check_uint256("total_supply", self.state.total_supply + amount)
        put(self.state.balances, to, self.state.balances.get(to, 0) + amount)
        assign(self.state, "total_supply", self.state.total_supply + amount)
        logger.debug(f"{self.symbol}: minted {amount} to {to}")

    def burn(self, account: str, amount: int) -> None:
        check_uint256("amount", amount)
        account = Web3.to_checksum_address(account)
        balance = self.state.balances.get(account, 0)
        if balance < amount:
            raise InsufficientBalanceError(f"{self.symbol}: cannot burn {amount} from {account}")
        put(self.state.balances, account, balance - amount)
        assign(self.state, "total_supply", self.state.total_supply - amount)
