"""
Error taxonomy for the mint core.

Every failure a caller can observe from MintService is a MintError. The web
layer turns them into JSON responses using `status_code`, `code` and
`details`.
"""

from typing import Any, Optional


class MintError(Exception):
    code = "MINT_FAILED"
    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.details = details

    def to_dict(self) -> dict:
        payload = {"error": self.message, "code": self.code}
        if self.details:
            payload["details"] = self.details
        return payload


# ── Preflight / chain query ───────────────────────────────────────────────────

class MintPreconditionError(MintError):
    code = "MINT_PRECONDITION_FAILED"
    status_code = 503


class WalletStatusUnavailable(MintPreconditionError):
    """The chain RPC could not report the minter wallet. Retryable."""

    code = "MINTER_WALLET_STATUS_UNAVAILABLE"
    status_code = 502


class AddressFormatError(MintPreconditionError):
    """Minter address could not be encoded. Configuration problem, not retryable."""

    code = "MINTER_WALLET_ADDRESS_FORMAT"
    status_code = 500


class ToncenterError(Exception):
    """Transport-level RPC failure. Always wrapped in WalletStatusUnavailable."""


# ── Deploy process ────────────────────────────────────────────────────────────

class DeployProcessFailed(MintError):
    """Child output stays on the exception for logs; callers only see the exit code."""

    code = "DEPLOY_PROCESS_FAILED"
    status_code = 500

    def __init__(self, message: str, *, stdout: str = "", stderr: str = "",
                 returncode: Optional[int] = None):
        super().__init__(message, details={"returncode": returncode})
        self.stdout = stdout
        self.stderr = stderr
        self.returncode = returncode


# ── Result protocol ───────────────────────────────────────────────────────────
# The tool exited 0 but did not speak the protocol.

class ResultProtocolError(MintError):
    code = "RESULT_PROTOCOL_ERROR"
    status_code = 502

    def __init__(self, message: str, *, stdout: str = "", stderr: str = "",
                 result: Optional[dict] = None):
        super().__init__(message)
        self.stdout = stdout
        self.stderr = stderr
        self.result = result


class MissingResultPayload(ResultProtocolError):
    code = "MISSING_RESULT_PAYLOAD"


class MalformedResultPayload(ResultProtocolError):
    code = "MALFORMED_RESULT_PAYLOAD"


class InvalidResultPayload(ResultProtocolError):
    code = "INVALID_RESULT_PAYLOAD"
