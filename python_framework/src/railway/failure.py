"""
Failure description — structured error information for the failure track.

An ErrorCode classifies the failure; FailureDescription carries the code,
a human-readable message, the originating exception (if any) and the
moment the failure was recorded.
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum, unique


@unique
class ErrorCode(Enum):
    """
    Structured error codes for the failure track.

    Split into caller-side problems (bad input, violated invariants) and
    environment-side problems (I/O, external tools, configuration).
    """

    # --- Caller-side errors ---
    VALIDATION_ERROR = "VALIDATION_ERROR"
    """Malformed input: unparseable certificate, wrong passphrase, bad digest name."""

    NOT_FOUND = "NOT_FOUND"
    """A referenced resource does not exist."""

    BUSINESS_RULE_ERROR = "BUSINESS_RULE_ERROR"
    """Domain invariant violated: wrong issuer, incomplete chain, locked keystore."""

    # --- Environment-side errors ---
    TECHNICAL_ERROR = "TECHNICAL_ERROR"
    """Local infrastructure failure (cache writes, temp files)."""

    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    """System misconfiguration, e.g. a missing external verification binary."""

    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    """Remote resource could not be retrieved (CRL distribution points)."""

    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    """Operation exceeded its deadline."""

    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    """Unexpected/unclassified failures."""


@dataclass(frozen=True, slots=True)
class FailureDescription:
    """
    Immutable failure descriptor carrying error code, message, optional exception, and timestamp.

    >>> desc = FailureDescription(ErrorCode.VALIDATION_ERROR, "Not a certificate")
    >>> desc.code
    <ErrorCode.VALIDATION_ERROR: 'VALIDATION_ERROR'>
    >>> desc.message
    'Not a certificate'
    """

    code: ErrorCode
    message: str
    exception: BaseException | None = field(default=None, repr=False)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def full_stack_trace(self) -> str:
        """Message followed by the formatted exception chain, if there is one."""
        if self.exception is None:
            return self.message
        tb = "".join(
            traceback.format_exception(
                type(self.exception), self.exception, self.exception.__traceback__
            )
        )
        return f"{self.message}\n{tb}"

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"
