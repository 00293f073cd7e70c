"""
Railway-Oriented Programming (ROP) helpers.

Explicit, composable error handling at orchestration boundaries:

    from railway import Result, ErrorCode

    def read_anchor(path: Path) -> Result[bytes]:
        return Result.from_computation(
            path.read_bytes, ErrorCode.NOT_FOUND, f"Cannot read {path}"
        )

    result = read_anchor(path).map(len)
"""

from railway.assertions import ResultAssertions
from railway.execution import (
    ExecutionContext,
    LoggingExecutionContext,
    NoOpExecutionContext,
)
from railway.failure import ErrorCode, FailureDescription
from railway.result import Failure, Result, Success

__all__ = [
    "Result",
    "Success",
    "Failure",
    "ErrorCode",
    "FailureDescription",
    "ExecutionContext",
    "NoOpExecutionContext",
    "LoggingExecutionContext",
    "ResultAssertions",
]

__version__ = "1.1.0"
