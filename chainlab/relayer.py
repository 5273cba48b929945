"""Relayer API (FastAPI): submits signed pay stubs and authorizations."""

import logging
import time

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from .authorization import TransferAuthorizer
from .cpamm import CPAMM
from .errors import ChainLabError
from .payroll import Payroll
from .types import (
    CancelAuthorizationRequest,
    PayStubClaimRequest,
    PoolStatus,
    TransferAuthorizationRequest,
)

logger = logging.getLogger(__name__)


def _submit(operation):
    """Run a component operation, mapping rejections to HTTP 400."""
    try:
        return operation()
    except ChainLabError as e:
        logger.warning(f"Rejected submission: {e.code}: {e}")
        raise HTTPException(status_code=400, detail={"error": e.code, "message": str(e)})
    except ValueError as e:
        # Malformed hex, addresses or out-of-range payload fields
        raise HTTPException(status_code=400, detail={"error": "invalid_request", "message": str(e)})


class Relayer:
    """Relays signed messages to the payroll and authorized-token components."""

    def __init__(self, payroll: Payroll, authorizer: TransferAuthorizer, pool: CPAMM | None = None):
        self.payroll = payroll
        self.authorizer = authorizer
        self.pool = pool
        self.history: list[dict] = []

    def _record(self, kind: str, **details):
        self.history.append({"kind": kind, "timestamp": int(time.time()), **details})

    def claim_pay_stub(self, request: PayStubClaimRequest) -> dict:
        """Validate and pay a director-signed pay stub."""
        stub = request.to_pay_stub()
        amount = _submit(lambda: self.payroll.claim(stub, request.signature_bytes()))

        self._record("pay_stub", employee=stub.employee, period=stub.period, amount=str(amount))
        return {"status": "paid", "employee": stub.employee, "period": stub.period, "amount": str(amount)}

    def transfer_with_authorization(self, request: TransferAuthorizationRequest) -> dict:
        auth = _submit(request.to_authorization)
        _submit(lambda: self.authorizer.transfer_with_authorization(auth, request.signature_bytes()))

        self._record("transfer", from_address=auth.from_, to_address=auth.to, value=str(auth.value))
        return {"status": "transferred", "nonce": "0x" + auth.nonce.hex()}

    def cancel_authorization(self, request: CancelAuthorizationRequest) -> dict:
        cancel = _submit(request.to_cancellation)
        _submit(lambda: self.authorizer.cancel_authorization(cancel, request.signature_bytes()))

        self._record("cancel", authorizer=cancel.authorizer)
        return {"status": "cancelled", "nonce": "0x" + cancel.nonce.hex()}

    def get_pool_status(self) -> PoolStatus:
        if self.pool is None:
            raise HTTPException(status_code=404, detail="No pool configured")
        return PoolStatus(
            token0=self.pool.token0.address,
            token1=self.pool.token1.address,
            reserve0=self.pool.reserve0,
            reserve1=self.pool.reserve1,
            total_supply=self.pool.total_supply,
        )


def create_app(relayer: Relayer, config=None) -> FastAPI:
    """Create the FastAPI application."""
    app = FastAPI(title="chainlab relayer", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.post("/payroll/claims")
    def claim_pay_stub(request: PayStubClaimRequest):
        return relayer.claim_pay_stub(request)

    @app.get("/payroll/claims/{employee}/{period}")
    def get_claim(employee: str, period: int):
        return {
            "employee": employee,
            "period": period,
            "claimed": _submit(lambda: relayer.payroll.is_claimed(employee, period)),
        }

    @app.post("/authorizations/transfer")
    def transfer_with_authorization(request: TransferAuthorizationRequest):
        return relayer.transfer_with_authorization(request)

    @app.post("/authorizations/cancel")
    def cancel_authorization(request: CancelAuthorizationRequest):
        return relayer.cancel_authorization(request)

    @app.get("/authorizations/{authorizer}/{nonce}")
    def get_authorization_state(authorizer: str, nonce: str):
        used = _submit(
            lambda: relayer.authorizer.authorization_state(authorizer, bytes.fromhex(nonce.removeprefix("0x")))
        )
        return {"authorizer": authorizer, "nonce": nonce, "used": used}

    @app.get("/pool")
    def get_pool():
        return relayer.get_pool_status()

    @app.get("/pool/quote")
    def quote(
        token_in: str = Query(description="Address of the token sold"),
        amount_in: int = Query(ge=0, description="Amount sold, in base units"),
    ):
        if relayer.pool is None:
            raise HTTPException(status_code=404, detail="No pool configured")
        amount_out = _submit(lambda: relayer.pool.get_amount_out(token_in, amount_in))
        return {"token_in": token_in, "amount_in": amount_in, "amount_out": amount_out}

    @app.get("/history")
    def get_history():
        return relayer.history

    @app.get("/config")
    def get_config():
        if config is None:
            return {"error": "Config not available"}
        return {
            "chain_id": config.chain_id,
            "domain": {"name": config.domain_name, "version": config.domain_version},
            "payroll_address": config.payroll_address,
            "token_address": config.token_address,
            "pair_token_address": config.pair_token_address,
            "pool_address": config.pool_address,
            "director": relayer.payroll.director,
        }

    return app
