from __future__ import annotations

import dataclasses
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pytest

from nftrecon.config import Settings
from nftrecon.errors import LedgerError, NotFoundError
from nftrecon.ledger.base import LedgerAPI
from nftrecon.ledger.client import AsyncLedger
from nftrecon.ledger.types import (
    AssetDetail,
    CollectionData,
    TokenActivity,
    TokenRecord,
    TransactionRecord,
)

ENV_KEYS = ("NETWORK", "APTOS_API_KEY", "APTOS_NODE_URL", "APTOS_INDEXER_URL", "NFTRECON_CONFIG")


class FakeLedger(LedgerAPI):
    """In-memory ledger; every call is appended to `calls` as (method, args...)."""

    def __init__(
        self,
        *,
        transactions: Iterable[TransactionRecord] = (),
        owned: Optional[Dict[Tuple[str, Optional[str]], List[TokenRecord]]] = None,
        collection_tokens: Optional[Dict[str, List[TokenRecord]]] = None,
        assets: Optional[Dict[str, AssetDetail]] = None,
        collections: Optional[Dict[Tuple[str, str], CollectionData]] = None,
        activities: Optional[Dict[str, List[TokenActivity]]] = None,
        committed: Optional[Dict[str, TransactionRecord]] = None,
        pending: Optional[Dict[str, TransactionRecord]] = None,
        fail_assets: Iterable[str] = (),
        fail_owned: Iterable[Tuple[str, Optional[str]]] = (),
        fail_tx_offsets: Iterable[int] = (),
    ):
        self.transactions = list(transactions)
        self.owned = owned or {}
        self.tokens_by_collection = collection_tokens or {}
        self.assets = assets or {}
        self.collections = collections or {}
        self.activities = activities or {}
        self.committed = committed or {}
        self.pending = pending or {}
        self.fail_assets = set(fail_assets)
        self.fail_owned = set(fail_owned)
        self.fail_tx_offsets = set(fail_tx_offsets)
        self.calls: List[Tuple[Any, ...]] = []

    def account_transactions(self, address, *, limit, offset=0):
        self.calls.append(("account_transactions", address, offset, limit))
        if offset in self.fail_tx_offsets:
            raise LedgerError(f"HTTP 500 at offset {offset}", status=500)
        return self.transactions[offset:offset + limit]

    def account_transactions_since(self, address, *, limit, start_version=None):
        self.calls.append(("account_transactions_since", address, start_version, limit))
        start = start_version or 0
        rows = sorted((t for t in self.transactions if t.version >= start), key=lambda t: t.version)
        # the indexer does not return hashes
        return [dataclasses.replace(t, hash="") for t in rows[:limit]]

    def owned_tokens(self, owner, *, limit, offset=0, collection_id=None):
        self.calls.append(("owned_tokens", owner, collection_id, offset, limit))
        if (owner, collection_id) in self.fail_owned:
            raise LedgerError("indexer unavailable")
        return self.owned.get((owner, collection_id), [])[offset:offset + limit]

    def collection_tokens(self, collection_id, *, limit, offset=0):
        self.calls.append(("collection_tokens", collection_id, offset, limit))
        return self.tokens_by_collection.get(collection_id, [])[offset:offset + limit]

    def digital_asset(self, token_id):
        self.calls.append(("digital_asset", token_id))
        if token_id in self.fail_assets:
            raise LedgerError(f"lookup failed for {token_id}")
        if token_id not in self.assets:
            raise NotFoundError(f"digital asset {token_id} not found")
        return self.assets[token_id]

    def collection_data(self, creator_address, collection_name):
        self.calls.append(("collection_data", creator_address, collection_name))
        try:
            return self.collections[(creator_address, collection_name)]
        except KeyError:
            raise NotFoundError(f"collection '{collection_name}' not found") from None

    def transaction_by_hash(self, tx_hash):
        self.calls.append(("transaction_by_hash", tx_hash))
        if tx_hash not in self.committed:
            raise NotFoundError(f"transaction {tx_hash} not found")
        return self.committed[tx_hash]

    def wait_for_transaction(self, tx_hash):
        self.calls.append(("wait_for_transaction", tx_hash))
        if tx_hash not in self.pending:
            raise LedgerError(f"timed out waiting for {tx_hash}")
        return self.pending[tx_hash]

    def transaction_by_version(self, version):
        self.calls.append(("transaction_by_version", version))
        for t in self.transactions:
            if t.version == version:
                return t
        raise NotFoundError(f"version {version} not found")

    def token_activities(self, token_id, *, limit=100):
        self.calls.append(("token_activities", token_id))
        return self.activities.get(token_id, [])[:limit]

    def count(self, method: str) -> int:
        return sum(1 for c in self.calls if c[0] == method)


def tx(version: int, h: str, function: Optional[str] = None, success: bool = True) -> TransactionRecord:
    return TransactionRecord(
        version=version,
        hash=h,
        type="user_transaction",
        success=success,
        function=function,
        timestamp=str(1700000000000000 + version),
    )


def token(token_id: str, name: str = "Moment", serial: Optional[str] = None, collection_id: Optional[str] = None) -> TokenRecord:
    props = {"Serial Number": serial} if serial is not None else {}
    return TokenRecord(token_id=token_id, name=name, collection_id=collection_id, properties=props)


def asset(token_id: str, serial: Optional[str] = None, uri: Optional[str] = None) -> AssetDetail:
    props = {"Serial Number": serial} if serial is not None else {}
    return AssetDetail(token_id=token_id, token_name=f"Token {token_id}", token_standard="v2", token_uri=uri, token_properties=props)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    import os

    for k in list(os.environ):
        if k.startswith("NFTRECON_") or k in ENV_KEYS:
            monkeypatch.delenv(k, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        network="testnet",
        node_url="http://node.test/v1",
        indexer_url="http://indexer.test/v1/graphql",
        page_size=2,
        page_delay_s=0.0,
        max_concurrency=3,
        output_dir=str(tmp_path / "out"),
    )


@pytest.fixture
def make_ledger():
    def _make(**kwargs) -> Tuple[FakeLedger, AsyncLedger]:
        fake = FakeLedger(**kwargs)
        return fake, AsyncLedger(fake)

    return _make
