from __future__ import annotations

from typing import Any, List, Optional


class NftReconError(Exception):
    """Base class for errors raised by nftrecon."""


class ConfigError(NftReconError):
    """Missing or invalid configuration, detected at startup."""


class LedgerError(NftReconError):
    """A remote ledger / indexer call failed."""

    def __init__(self, message: str, *, status: Optional[int] = None, attempts: Optional[List[str]] = None):
        super().__init__(message)
        self.status = status
        self.attempts = list(attempts or [])


class NotFoundError(LedgerError):
    """The remote API reported that the requested object does not exist."""


class PaginationError(NftReconError):
    """The fetch-all loop could not continue (e.g. no cursor on the last record)."""


class PageFetchError(PaginationError):
    """A single page request failed; the whole fetch-all is aborted.

    Records accumulated before the failure are discarded, only their count is kept.
    """

    def __init__(self, page_number: int, cursor: Any, records_before: int, cause: BaseException):
        super().__init__(
            f"page {page_number} failed at cursor={cursor!r} after {records_before} records: {cause}"
        )
        self.page_number = page_number
        self.cursor = cursor
        self.records_before = records_before


class DataFileError(NftReconError):
    """A required local input file is missing or malformed."""

    def __init__(self, path: Any, reason: str):
        super().__init__(f"{path}: {reason}")
        self.path = str(path)
        self.reason = reason
