"""Tests for the relayer API."""

import os

from eth_account import Account
from fastapi.testclient import TestClient

from chainlab.authorization import TransferAuthorizer
from chainlab.cpamm import CPAMM
from chainlab.eip712 import TypedDataDomain, sign_typed_data
from chainlab.payroll import Payroll
from chainlab.relayer import Relayer, create_app
from chainlab.token import MAX_UINT256, Token
from chainlab.types import CancelAuthorization, PayStub, TransferAuthorization


CHAIN_ID = 31337
PAYROLL_ADDRESS = "0x75537828f2ce51be7289709686A69CbFDbB714F1"
EMPLOYEE = "0xa0Ee7A142d267C1f36714E4a8F75612F20a79720"
LP = "0x000000000000000000000000000000000000a11c"


def _make_client(director: str) -> tuple[TestClient, Relayer]:
    token = Token("Payroll USD", "PUSD", "0x0000000000000000000000000000000000001111")
    pair = Token("Pair Token", "PAIR", "0x0000000000000000000000000000000000002222")

    payroll = Payroll(director, token, TypedDataDomain("Payroll IT", "1", CHAIN_ID, PAYROLL_ADDRESS))
    token.mint(payroll.address, 10**24)

    authorizer = TransferAuthorizer(token, TypedDataDomain(token.name, "1", CHAIN_ID, token.address))

    pool = CPAMM(token, pair, "0x0000000000000000000000000000000000003333")
    for t in (token, pair):
        t.mint(LP, 10_000)
        t.approve(LP, pool.address, MAX_UINT256)
    pool.add_liquidity(LP, 1000, 500)

    relayer = Relayer(payroll, authorizer, pool)
    return TestClient(create_app(relayer)), relayer


def _claim_body(stub: PayStub, sig: bytes) -> dict:
    return {
        "employee": stub.employee,
        "period": stub.period,
        "usd_amount": stub.usd_amount,
        "signature": "0x" + sig.hex(),
    }


def test_claim_pay_stub():
    director = Account.create()
    client, relayer = _make_client(director.address)
    stub = PayStub(employee=EMPLOYEE, period=202505, usd_amount=1100)
    sig = sign_typed_data(stub, relayer.payroll.domain, director.key.hex())

    r = client.post("/payroll/claims", json=_claim_body(stub, sig))
    assert r.status_code == 200
    assert r.json()["status"] == "paid"
    assert r.json()["amount"] == str(11 * 10**18)

    r = client.get(f"/payroll/claims/{EMPLOYEE}/202505")
    assert r.json()["claimed"] is True
    assert relayer.history[0]["kind"] == "pay_stub"


def test_claim_replay_rejected():
    director = Account.create()
    client, relayer = _make_client(director.address)
    stub = PayStub(employee=EMPLOYEE, period=202505, usd_amount=1100)
    sig = sign_typed_data(stub, relayer.payroll.domain, director.key.hex())

    assert client.post("/payroll/claims", json=_claim_body(stub, sig)).status_code == 200
    r = client.post("/payroll/claims", json=_claim_body(stub, sig))
    assert r.status_code == 400
    assert r.json()["detail"]["error"] == "period_already_claimed"


def test_claim_wrong_signer_rejected():
    director = Account.create()
    client, relayer = _make_client(director.address)
    stub = PayStub(employee=EMPLOYEE, period=202505, usd_amount=1100)
    sig = sign_typed_data(stub, relayer.payroll.domain, Account.create().key.hex())

    r = client.post("/payroll/claims", json=_claim_body(stub, sig))
    assert r.status_code == 400
    assert r.json()["detail"]["error"] == "wrong_signer"


def test_claim_bad_hex_rejected():
    director = Account.create()
    client, _ = _make_client(director.address)
    body = {"employee": EMPLOYEE, "period": 202505, "usd_amount": 1100, "signature": "0xzz"}

    r = client.post("/payroll/claims", json=body)
    assert r.status_code == 400
    assert r.json()["detail"]["error"] == "invalid_request"


def test_transfer_and_cancel_authorization():
    director = Account.create()
    holder = Account.create()
    client, relayer = _make_client(director.address)
    relayer.authorizer.token.mint(holder.address, 1_000)

    auth = TransferAuthorization(
        from_=holder.address,
        to=EMPLOYEE,
        value=400,
        valid_after=0,
        valid_before=2**40,
        nonce=os.urandom(32),
    )
    sig = sign_typed_data(auth, relayer.authorizer.domain, holder.key.hex())
    body = {
        "from_address": auth.from_,
        "to_address": auth.to,
        "value": auth.value,
        "valid_after": auth.valid_after,
        "valid_before": auth.valid_before,
        "nonce": "0x" + auth.nonce.hex(),
        "signature": "0x" + sig.hex(),
    }

    r = client.post("/authorizations/transfer", json=body)
    assert r.status_code == 200
    assert relayer.authorizer.token.balance_of(EMPLOYEE) == 400

    r = client.get(f"/authorizations/{holder.address}/0x{auth.nonce.hex()}")
    assert r.json()["used"] is True

    cancel = CancelAuthorization(authorizer=holder.address, nonce=os.urandom(32))
    cancel_sig = sign_typed_data(cancel, relayer.authorizer.domain, holder.key.hex())
    r = client.post(
        "/authorizations/cancel",
        json={
            "authorizer": cancel.authorizer,
            "nonce": "0x" + cancel.nonce.hex(),
            "signature": "0x" + cancel_sig.hex(),
        },
    )
    assert r.status_code == 200
    assert relayer.authorizer.authorization_state(holder.address, cancel.nonce)


def test_expired_authorization_rejected():
    director = Account.create()
    holder = Account.create()
    client, relayer = _make_client(director.address)
    relayer.authorizer.token.mint(holder.address, 1_000)

    auth = TransferAuthorization(
        from_=holder.address, to=EMPLOYEE, value=1, valid_after=0, valid_before=1, nonce=os.urandom(32)
    )
    sig = sign_typed_data(auth, relayer.authorizer.domain, holder.key.hex())
    body = {
        "from_address": auth.from_,
        "to_address": auth.to,
        "value": auth.value,
        "valid_after": auth.valid_after,
        "valid_before": auth.valid_before,
        "nonce": "0x" + auth.nonce.hex(),
        "signature": "0x" + sig.hex(),
    }

    r = client.post("/authorizations/transfer", json=body)
    assert r.status_code == 400
    assert r.json()["detail"]["error"] == "authorization_expired"


def test_pool_status_and_quote():
    client, relayer = _make_client(Account.create().address)

    r = client.get("/pool")
    assert r.status_code == 200
    assert r.json()["reserve0"] == 1000
    assert r.json()["reserve1"] == 500
    assert r.json()["total_supply"] == 707

    token0 = relayer.pool.token0.address
    r = client.get("/pool/quote", params={"token_in": token0, "amount_in": 100})
    assert r.json()["amount_out"] == 45

    r = client.get("/pool/quote", params={"token_in": "0x0000000000000000000000000000000000009999", "amount_in": 1})
    assert r.status_code == 400
    assert r.json()["detail"]["error"] == "unknown_token"


def test_config_without_config():
    client, _ = _make_client(Account.create().address)
    assert client.get("/config").json() == {"error": "Config not available"}


def test_out_of_range_period_rejected():
    director = Account.create()
    client, relayer = _make_client(director.address)
    stub = PayStub(employee=EMPLOYEE, period=202505, usd_amount=1100)
    body = _claim_body(stub, sign_typed_data(stub, relayer.payroll.domain, director.key.hex()))

    for period in (-1, -202505):
        body["period"] = period
        r = client.post("/payroll/claims", json=body)
        assert r.status_code == 400
        assert r.json()["detail"]["error"] == "invalid_request"
    assert relayer.payroll.token.balance_of(EMPLOYEE) == 0


def test_short_nonce_rejected():
    """One signed authorization pays out once, whatever the nonce padding."""
    director = Account.create()
    holder = Account.create()
    client, relayer = _make_client(director.address)
    relayer.authorizer.token.mint(holder.address, 1_000)

    auth = TransferAuthorization(
        from_=holder.address,
        to=EMPLOYEE,
        value=10,
        valid_after=0,
        valid_before=2**40,
        nonce=b"\xab" + b"\x00" * 31,
    )
    sig = sign_typed_data(auth, relayer.authorizer.domain, holder.key.hex())
    body = {
        "from_address": auth.from_,
        "to_address": auth.to,
        "value": auth.value,
        "valid_after": auth.valid_after,
        "valid_before": auth.valid_before,
        "nonce": "0x" + auth.nonce.hex(),
        "signature": "0x" + sig.hex(),
    }
    assert client.post("/authorizations/transfer", json=body).status_code == 200

    body["nonce"] = "0xab"
    r = client.post("/authorizations/transfer", json=body)
    assert r.status_code == 400
    assert r.json()["detail"]["error"] == "invalid_request"

    assert client.get(f"/authorizations/{holder.address}/0xab").status_code == 400
    assert relayer.authorizer.token.balance_of(EMPLOYEE) == 10
