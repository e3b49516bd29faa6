"""
Error hierarchy for the monitoring engine.

Per-account errors (UnresolvedAccount) are isolated to one account.
Per-cycle errors (TransientStoreError) abort the current cycle only.
ConfigurationError is fatal and only raised at startup.
"""


class SentinelError(Exception):
    """Base class for all monitoring errors."""


class ConfigurationError(SentinelError):
    """Invalid static configuration. Refuse to start."""


class TransientStoreError(SentinelError):
    """Activity log or watchlist store unavailable, locked or timed out."""


class UnresolvedAccount(SentinelError):
    """Account has activity but no entry in the user directory."""

    def __init__(self, account_id: str):
        super().__init__(f"Account {account_id} not found in user directory")
        self.account_id = account_id


class PublishError(SentinelError):
    """Alert could not be delivered to a sink."""
