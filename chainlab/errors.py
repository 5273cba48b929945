"""Error types shared by the verifier, token, payroll and pool components.

Every error carries a stable ``code`` so relayers can report the exact reason
a submission was rejected.
"""


class ChainLabError(Exception):
    """Base class for every rejected operation."""

    code = "chainlab_error"


class SignatureError(ChainLabError):
    code = "signature_error"


class SignatureFormatError(SignatureError):
    """Signature bytes cannot be recovered (length, recovery id, r/s range)."""

    code = "invalid_signature_format"


class WrongSignerError(SignatureError):
    """Signature is well formed but was produced by another key."""

    code = "wrong_signer"

    def __init__(self, recovered: str, expected: str):
        self.recovered = recovered
        self.expected = expected
        super().__init__(f"Signature mismatch: recovered {recovered}, expected {expected}")


class ReplayError(ChainLabError):
    code = "replay"


class NonceAlreadyUsedError(ReplayError):
    code = "nonce_already_used"


class InvalidNonceError(ReplayError):
    code = "invalid_nonce"


class PeriodAlreadyClaimedError(ReplayError):
    code = "period_already_claimed"


class TimeWindowError(ChainLabError):
    code = "time_window"


class AuthorizationNotYetValidError(TimeWindowError):
    code = "authorization_not_yet_valid"


class AuthorizationExpiredError(TimeWindowError):
    code = "authorization_expired"


class PoolError(ChainLabError):
    code = "pool_error"


class UnknownTokenError(PoolError):
    code = "unknown_token"


class ZeroAmountError(PoolError):
    code = "zero_amount"


class RatioMismatchError(PoolError):
    code = "ratio_mismatch"


class ZeroOutputError(PoolError):
    code = "zero_output"


class InsufficientSharesError(PoolError):
    code = "insufficient_shares"


class TokenError(ChainLabError):
    code = "token_error"


class InsufficientBalanceError(TokenError):
    code = "insufficient_balance"


class InsufficientAllowanceError(TokenError):
    code = "insufficient_allowance"


class InvalidPriceError(ChainLabError):
    """Price feed returned a non-positive answer."""

    code = "invalid_price"
