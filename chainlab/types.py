"""EIP-712 typed data structures for signed authorizations."""

from dataclasses import dataclass
from typing import ClassVar

from pydantic import BaseModel


# EIP-712 type definitions
EIP712_DOMAIN_TYPE = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]

PAY_STUB_TYPE = [
    {"name": "employee", "type": "address"},
    {"name": "period", "type": "uint256"},
    {"name": "usdAmount", "type": "uint256"},
]

TRANSFER_WITH_AUTHORIZATION_TYPE = [
    {"name": "from", "type": "address"},
    {"name": "to", "type": "address"},
    {"name": "value", "type": "uint256"},
    {"name": "validAfter", "type": "uint256"},
    {"name": "validBefore", "type": "uint256"},
    {"name": "nonce", "type": "bytes32"},
]

CANCEL_AUTHORIZATION_TYPE = [
    {"name": "authorizer", "type": "address"},
    {"name": "nonce", "type": "bytes32"},
]

PERMIT_TYPE = [
    {"name": "owner", "type": "address"},
    {"name": "spender", "type": "address"},
    {"name": "value", "type": "uint256"},
    {"name": "nonce", "type": "uint256"},
    {"name": "deadline", "type": "uint256"},
]


def _check_nonce(nonce: bytes) -> None:
    if len(nonce) != 32:
        raise ValueError(f"nonce must be 32 bytes, got {len(nonce)}")


@dataclass
class PayStub:
    """Pay stub signed by the payroll director. ``usd_amount`` is in cents."""

    PRIMARY_TYPE: ClassVar[str] = "PayStub"
    FIELDS: ClassVar[list] = PAY_STUB_TYPE

    employee: str  # address
    period: int  # e.g. 202505
    usd_amount: int

    def message(self) -> dict:
        return {
            "employee": self.employee,
            "period": self.period,
            "usdAmount": self.usd_amount,
        }


@dataclass
class TransferAuthorization:
    """Transfer authorized off-chain by ``from_`` with a caller-chosen nonce."""

    PRIMARY_TYPE: ClassVar[str] = "TransferWithAuthorization"
    FIELDS: ClassVar[list] = TRANSFER_WITH_AUTHORIZATION_TYPE

    from_: str  # address
    to: str  # address
    value: int
    valid_after: int
    valid_before: int
    nonce: bytes  # bytes32

    def __post_init__(self):
        _check_nonce(self.nonce)

    def message(self) -> dict:
        return {
            "from": self.from_,
            "to": self.to,
            "value": self.value,
            "validAfter": self.valid_after,
            "validBefore": self.valid_before,
            "nonce": self.nonce,
        }


@dataclass
class CancelAuthorization:
    PRIMARY_TYPE: ClassVar[str] = "CancelAuthorization"
    FIELDS: ClassVar[list] = CANCEL_AUTHORIZATION_TYPE

    authorizer: str  # address
    nonce: bytes  # bytes32

    def __post_init__(self):
        _check_nonce(self.nonce)

    def message(self) -> dict:
        return {"authorizer": self.authorizer, "nonce": self.nonce}


@dataclass
class Permit:
    """Allowance approval signed by ``owner`` with its sequential nonce."""

    PRIMARY_TYPE: ClassVar[str] = "Permit"
    FIELDS: ClassVar[list] = PERMIT_TYPE

    owner: str  # address
    spender: str  # address
    value: int
    nonce: int
    deadline: int

    def message(self) -> dict:
        return {
            "owner": self.owner,
            "spender": self.spender,
            "value": self.value,
            "nonce": self.nonce,
            "deadline": self.deadline,
        }


def _decode_hex(value: str) -> bytes:
    return bytes.fromhex(value.removeprefix("0x"))


class PayStubClaimRequest(BaseModel):
    """API request model for relaying a signed pay stub."""

    employee: str
    period: int
    usd_amount: int
    signature: str  # hex-encoded

    def to_pay_stub(self) -> PayStub:
        return PayStub(employee=self.employee, period=self.period, usd_amount=self.usd_amount)

    def signature_bytes(self) -> bytes:
        return _decode_hex(self.signature)


class TransferAuthorizationRequest(BaseModel):
    """API request model for relaying a signed transfer authorization."""

    from_address: str
    to_address: str
    value: int
    valid_after: int
    valid_before: int
    nonce: str  # hex-encoded bytes32
    signature: str  # hex-encoded

    def to_authorization(self) -> TransferAuthorization:
        return TransferAuthorization(
            from_=self.from_address,
            to=self.to_address,
            value=self.value,
            valid_after=self.valid_after,
            valid_before=self.valid_before,
            nonce=_decode_hex(self.nonce),
        )

    def signature_bytes(self) -> bytes:
        return _decode_hex(self.signature)


class CancelAuthorizationRequest(BaseModel):
    authorizer: str
    nonce: str  # hex-encoded bytes32
    signature: str  # hex-encoded

    def to_cancellation(self) -> CancelAuthorization:
        return CancelAuthorization(authorizer=self.authorizer, nonce=_decode_hex(self.nonce))

    def signature_bytes(self) -> bytes:
        return _decode_hex(self.signature)


class PoolStatus(BaseModel):
    """Current pool reserves and share supply."""

    token0: str
    token1: str
    reserve0: int
    reserve1: int
    total_supply: int
