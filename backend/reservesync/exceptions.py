"""Exception taxonomy for reservation sync and ticket ledger operations."""


class ReserveSyncError(Exception):
    """Base exception for reservesync errors."""

    pass


class TransientFetchError(ReserveSyncError):
    """
    A page could not be fetched for a reason that may go away on its own.

    Network errors, timeouts, rate limiting and 5xx responses. The sync
    checkpoint is preserved and the next scheduled run retries the same page.
    """

    pass


class FatalFetchError(ReserveSyncError):
    """The API rejected the request itself (bad filter); retrying will not help."""

    pass


class MergeWriteError(ReserveSyncError):
    """Writing a merged page to the tabular store failed."""

    pass


class InsufficientBalanceError(ReserveSyncError):
    """A ticket consumption was rejected because the balance is too low."""

    def __init__(
        self,
        company_id: str,
        period_key: str,
        resource_type: str,
        balance: int,
        amount: int,
    ):
        self.company_id = company_id
        self.period_key = period_key
        self.resource_type = resource_type
        self.balance = balance
        self.amount = amount
        super().__init__(
            f"Insufficient {resource_type} tickets for company {company_id} "
            f"in {period_key}: balance {balance}, requested {amount}"
        )


class LedgerEntryNotFoundError(InsufficientBalanceError):
    """No ledger entry exists for the company, period and resource type."""

    def __init__(self, company_id: str, period_key: str, resource_type: str, amount: int):
        super().__init__(company_id, period_key, resource_type, balance=0, amount=amount)
        self.args = (
            f"No {resource_type} ticket entry for company {company_id} in {period_key}",
        )


class RemoteCreateError(ReserveSyncError):
    """The remote API failed to create a reservation."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)
