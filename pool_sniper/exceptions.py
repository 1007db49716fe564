"""
Custom exception classes for the pool sniper.

Provides typed exceptions so callers can tell transient lookup failures
apart from persistence and ledger invariant failures.
"""

class BotException(Exception):
    """Base exception for all bot-related errors."""

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self):
        if self.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} [{ctx_str}]"
        return self.message


class NetworkException(BotException):
    """Raised when network/RPC operations fail or time out."""
    pass


class ValidationException(BotException):
    """Raised when transaction or account data cannot be decoded."""
    pass


class StateException(BotException):
    """Raised when the position file cannot be written."""
    pass


class LedgerException(BotException):
    """Raised when a ledger invariant would be violated."""
    pass


class ConfigurationException(BotException):
    """Raised when configuration is invalid."""
    pass
