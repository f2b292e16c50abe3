from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional

from nftrecon.ledger.types import (
    AssetDetail,
    CollectionData,
    TokenActivity,
    TokenRecord,
    TransactionRecord,
)


class LedgerAPI(ABC):
    """Minimal interface to the ledger query + metadata APIs.

    List methods return one page; exhaustion is signalled only by a page
    shorter than `limit`. Lookups raise NotFoundError when the object is absent.
    """

    @abstractmethod
    def account_transactions(self, address: str, *, limit: int, offset: int = 0) -> List[TransactionRecord]:
        """Offset-paged transactions sent by `address` (fullnode)."""
        raise NotImplementedError

    @abstractmethod
    def account_transactions_since(
        self, address: str, *, limit: int, start_version: Optional[int] = None
    ) -> List[TransactionRecord]:
        """Transactions touching `address` with version >= start_version, ascending (indexer)."""
        raise NotImplementedError

    @abstractmethod
    def owned_tokens(
        self, owner: str, *, limit: int, offset: int = 0, collection_id: Optional[str] = None
    ) -> List[TokenRecord]:
        raise NotImplementedError

    @abstractmethod
    def collection_tokens(self, collection_id: str, *, limit: int, offset: int = 0) -> List[TokenRecord]:
        raise NotImplementedError

    @abstractmethod
    def digital_asset(self, token_id: str) -> AssetDetail:
        raise NotImplementedError

    @abstractmethod
    def collection_data(self, creator_address: str, collection_name: str) -> CollectionData:
        raise NotImplementedError

    @abstractmethod
    def transaction_by_hash(self, tx_hash: str) -> TransactionRecord:
        raise NotImplementedError

    @abstractmethod
    def wait_for_transaction(self, tx_hash: str) -> TransactionRecord:
        raise NotImplementedError

    @abstractmethod
    def transaction_by_version(self, version: int) -> TransactionRecord:
        raise NotImplementedError

    @abstractmethod
    def token_activities(self, token_id: str, *, limit: int = 100) -> List[TokenActivity]:
        raise NotImplementedError
