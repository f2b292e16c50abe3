from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, List, Optional, Sequence, Tuple, Type, TypeVar

from nftrecon.errors import LedgerError
from nftrecon.ledger.base import LedgerAPI
from nftrecon.ledger.types import (
    AssetDetail,
    CollectionData,
    TokenActivity,
    TokenRecord,
    TransactionRecord,
)
from nftrecon.logging import get_logger

log = get_logger("nftrecon.ledger")

T = TypeVar("T")


class AsyncLedger:
    """Awaitable view of a LedgerAPI.

    Each call is handed to a worker thread so the event loop only suspends at
    the network boundary; nothing else is shared with the thread.
    """

    def __init__(self, api: LedgerAPI):
        self.api = api

    async def _call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        return await asyncio.to_thread(fn, *args, **kwargs)

    async def account_transactions(self, address: str, *, limit: int, offset: int = 0) -> List[TransactionRecord]:
        return await self._call(self.api.account_transactions, address, limit=limit, offset=offset)

    async def account_transactions_since(
        self, address: str, *, limit: int, start_version: Optional[int] = None
    ) -> List[TransactionRecord]:
        return await self._call(self.api.account_transactions_since, address, limit=limit, start_version=start_version)

    async def owned_tokens(
        self, owner: str, *, limit: int, offset: int = 0, collection_id: Optional[str] = None
    ) -> List[TokenRecord]:
        return await self._call(self.api.owned_tokens, owner, limit=limit, offset=offset, collection_id=collection_id)

    async def collection_tokens(self, collection_id: str, *, limit: int, offset: int = 0) -> List[TokenRecord]:
        return await self._call(self.api.collection_tokens, collection_id, limit=limit, offset=offset)

    async def digital_asset(self, token_id: str) -> AssetDetail:
        return await self._call(self.api.digital_asset, token_id)

    async def collection_data(self, creator_address: str, collection_name: str) -> CollectionData:
        return await self._call(self.api.collection_data, creator_address, collection_name)

    async def transaction_by_hash(self, tx_hash: str) -> TransactionRecord:
        return await self._call(self.api.transaction_by_hash, tx_hash)

    async def wait_for_transaction(self, tx_hash: str) -> TransactionRecord:
        return await self._call(self.api.wait_for_transaction, tx_hash)

    async def transaction_by_version(self, version: int) -> TransactionRecord:
        return await self._call(self.api.transaction_by_version, version)

    async def token_activities(self, token_id: str, *, limit: int = 100) -> List[TokenActivity]:
        return await self._call(self.api.token_activities, token_id, limit=limit)


# ----------------------------- fallback chain -----------------------------

@dataclass(frozen=True)
class Strategy(Generic[T]):
    """One named way of obtaining a value; `falls_through` lists the errors that move on to the next."""

    name: str
    call: Callable[[str], Awaitable[T]]
    falls_through: Tuple[Type[BaseException], ...] = (LedgerError,)


@dataclass(frozen=True)
class Resolved(Generic[T]):
    value: T
    strategy: str
    attempts: List[str]


async def first_success(strategies: Sequence[Strategy[T]], arg: str) -> Resolved[T]:
    attempts: List[str] = []
    for s in strategies:
        try:
            value = await s.call(arg)
        except s.falls_through as e:
            attempts.append(f"{s.name}: {e}")
            log.info("strategy %s failed for %s, trying next", s.name, arg, extra={"error": str(e)})
            continue
        return Resolved(value=value, strategy=s.name, attempts=attempts)
    raise LedgerError(f"no strategy succeeded for {arg}", attempts=attempts)


async def resolve_transaction(ledger: AsyncLedger, tx_hash: str) -> Resolved[TransactionRecord]:
    """Committed lookup first, then block until the node reports the hash."""
    chain: List[Strategy[TransactionRecord]] = [
        Strategy("direct", ledger.transaction_by_hash),
        Strategy("wait", ledger.wait_for_transaction),
    ]
    return await first_success(chain, tx_hash)
