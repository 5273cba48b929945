"""Tests for director-signed payroll claims."""

import pytest
from eth_account import Account

from chainlab.eip712 import TypedDataDomain, TypedDataVerifier, sign_typed_data
from chainlab.errors import (
    InsufficientBalanceError,
    InvalidPriceError,
    PeriodAlreadyClaimedError,
    ReplayError,
    SignatureFormatError,
    WrongSignerError,
    ZeroAmountError,
)
from chainlab.payroll import Payroll, StaticPriceFeed, usd_cents_to_token
from chainlab.token import Token
from chainlab.types import PayStub


CHAIN_ID = 31337
PAYROLL_ADDRESS = "0x75537828f2ce51be7289709686A69CbFDbB714F1"
EMPLOYEE = "0xa0Ee7A142d267C1f36714E4a8F75612F20a79720"


def _make_payroll(director: str, price_feed=None, funding: int = 10**24) -> Payroll:
    token = Token("Payroll USD", "PUSD", "0x0000000000000000000000000000000000001111")
    domain = TypedDataDomain("Payroll IT", "1", CHAIN_ID, PAYROLL_ADDRESS)
    payroll = Payroll(director, token, domain, price_feed=price_feed)
    token.mint(payroll.address, funding)
    return payroll


def test_claim_pays_employee_once():
    """Director signs {employee, 202505, 1100}; the second claim is a replay."""
    director = Account.create()
    payroll = _make_payroll(director.address)
    stub = PayStub(employee=EMPLOYEE, period=202505, usd_amount=1100)
    sig = sign_typed_data(stub, payroll.domain, director.key.hex())

    verifier = TypedDataVerifier(payroll.domain)
    assert verifier.verify(stub, sig, director.address)
    assert not verifier.verify(stub, sig, Account.create().address)

    paid = payroll.claim(stub, sig)
    assert paid == 11 * 10**18
    assert payroll.token.balance_of(EMPLOYEE) == paid
    assert payroll.is_claimed(EMPLOYEE, 202505)

    with pytest.raises(PeriodAlreadyClaimedError):
        payroll.claim(stub, sig)
    assert payroll.token.balance_of(EMPLOYEE) == paid


def test_replay_error_hierarchy():
    assert issubclass(PeriodAlreadyClaimedError, ReplayError)


def test_next_period_claimable():
    director = Account.create()
    payroll = _make_payroll(director.address)

    for period in (202505, 202506):
        stub = PayStub(employee=EMPLOYEE, period=period, usd_amount=1100)
        payroll.claim(stub, sign_typed_data(stub, payroll.domain, director.key.hex()))

    assert payroll.token.balance_of(EMPLOYEE) == 22 * 10**18


def test_claim_not_signed_by_director():
    director = Account.create()
    employee = Account.create()
    payroll = _make_payroll(director.address)
    stub = PayStub(employee=employee.address, period=202505, usd_amount=1100)
    sig = sign_typed_data(stub, payroll.domain, employee.key.hex())

    with pytest.raises(WrongSignerError):
        payroll.claim(stub, sig)
    assert not payroll.is_claimed(employee.address, 202505)


def test_claim_amount_tampered():
    director = Account.create()
    payroll = _make_payroll(director.address)
    stub = PayStub(employee=EMPLOYEE, period=202505, usd_amount=1100)
    sig = sign_typed_data(stub, payroll.domain, director.key.hex())

    with pytest.raises(WrongSignerError):
        payroll.claim(PayStub(employee=EMPLOYEE, period=202505, usd_amount=110000), sig)


def test_claim_malformed_signature():
    director = Account.create()
    payroll = _make_payroll(director.address)
    stub = PayStub(employee=EMPLOYEE, period=202505, usd_amount=1100)

    with pytest.raises(SignatureFormatError):
        payroll.claim(stub, b"\x11" * 65)


def test_claim_zero_amount():
    director = Account.create()
    payroll = _make_payroll(director.address)
    stub = PayStub(employee=EMPLOYEE, period=202505, usd_amount=0)

    with pytest.raises(ZeroAmountError):
        payroll.claim(stub, sign_typed_data(stub, payroll.domain, director.key.hex()))


def test_underfunded_claim_is_atomic():
    """A failed payout does not mark the period claimed."""
    director = Account.create()
    payroll = _make_payroll(director.address, funding=10**18)
    stub = PayStub(employee=EMPLOYEE, period=202505, usd_amount=1100)
    sig = sign_typed_data(stub, payroll.domain, director.key.hex())

    with pytest.raises(InsufficientBalanceError):
        payroll.claim(stub, sig)
    assert not payroll.is_claimed(EMPLOYEE, 202505)
    assert payroll.token.balance_of(payroll.address) == 10**18


def test_usd_conversion_with_price_feed():
    """1100 cents at 2000 USD per token with 18 decimals."""
    feed = StaticPriceFeed(answer=2000 * 10**8, decimals=8)
    assert usd_cents_to_token(1100, 18, feed) == 5_500_000_000_000_000


def test_usd_conversion_pegged():
    assert usd_cents_to_token(1100, 6) == 11_000_000
    assert usd_cents_to_token(1, 0) == 0


def test_claim_with_price_feed():
    director = Account.create()
    payroll = _make_payroll(director.address, price_feed=StaticPriceFeed(answer=2000 * 10**8))
    stub = PayStub(employee=EMPLOYEE, period=202505, usd_amount=1100)

    paid = payroll.claim(stub, sign_typed_data(stub, payroll.domain, director.key.hex()))
    assert paid == 5_500_000_000_000_000


def test_invalid_price_rejected():
    with pytest.raises(InvalidPriceError):
        usd_cents_to_token(1100, 18, StaticPriceFeed(answer=0))
