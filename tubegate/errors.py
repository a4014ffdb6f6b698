"""
Exception taxonomy and upstream error classification.

  InputValidationError  — malformed id / missing parameter, always 400
  UpstreamUnavailable   — every strategy exhausted, 503 / 404 / 403 / 502
  StrategyFailed        — one strategy failed; the runner moves on to the next
  StrategiesExhausted   — raised by the runner with every per-strategy failure
"""

from dataclasses import dataclass
from typing import List, Optional

from .models import ErrorCode, ErrorDetail


class GatewayError(Exception):
    """Error that maps onto an HTTP response."""

    status_code = 500

    def __init__(self, detail: ErrorDetail, status_code: Optional[int] = None) -> None:
        super().__init__(detail.message)
        self.detail = detail
        if status_code is not None:
            self.status_code = status_code


class InputValidationError(GatewayError):
    status_code = 400

    def __init__(self, message: str, code: ErrorCode = ErrorCode.INVALID_REQUEST) -> None:
        super().__init__(ErrorDetail(code=code, message=message, is_transient=False))


class UpstreamUnavailable(GatewayError):
    status_code = 503


class StrategyFailed(Exception):
    """A single strategy could not produce a result."""


@dataclass
class StrategyFailure:
    strategy_name: str
    message: str


class StrategiesExhausted(Exception):
    """Every strategy in a chain failed."""

    def __init__(self, label: str, failures: List[StrategyFailure]) -> None:
        super().__init__(f"All {len(failures)} {label} strategies failed")
        self.label = label
        self.failures = failures

    @property
    def first_message(self) -> str:
        return self.failures[0].message if self.failures else ""

    def summary(self) -> List[str]:
        return [f"[{f.strategy_name}]: {f.message[:200]}" for f in self.failures]


def classify_upstream_error(error_msg: str) -> Optional[tuple]:
    """
    Map an upstream error message onto (status_code, ErrorCode, message).
    Returns None when the message carries no recognised cause.
    """
    error_lower = error_msg.lower()

    if "video unavailable" in error_lower:
        return 404, ErrorCode.VIDEO_UNAVAILABLE, "Video not available"

    if "sign in" in error_lower:
        return 403, ErrorCode.SIGN_IN_REQUIRED, "Age-restricted or private video"

    return None
