"""Aptos connector: fullnode REST + indexer GraphQL.

One blocking HTTP call per method, stdlib urllib only. Pagination, rate
limiting and concurrency are the caller's business (see nftrecon.fetch and
nftrecon.enrich); this layer never loops over pages and never retries.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.error import HTTPError, URLError
from urllib.parse import quote, urlencode
from urllib.request import Request, urlopen

from nftrecon.errors import LedgerError, NotFoundError
from nftrecon.ledger import normalize
from nftrecon.ledger.base import LedgerAPI
from nftrecon.ledger.types import (
    AssetDetail,
    CollectionData,
    TokenActivity,
    TokenRecord,
    TransactionRecord,
)
from nftrecon.logging import get_logger

log = get_logger("nftrecon.aptos")


ACCOUNT_TRANSACTIONS_QUERY = """
query AccountTransactions($address: String!, $start: bigint!, $limit: Int!) {
  account_transactions(
    where: {account_address: {_eq: $address}, transaction_version: {_gte: $start}}
    order_by: {transaction_version: asc}
    limit: $limit
  ) {
    transaction_version
    user_transaction { sender timestamp entry_function_id_str }
  }
}
"""

OWNED_TOKENS_QUERY = """
query OwnedTokens($where: current_token_ownerships_v2_bool_exp!, $offset: Int!, $limit: Int!) {
  current_token_ownerships_v2(where: $where, offset: $offset, limit: $limit, order_by: {token_data_id: asc}) {
    token_data_id
    owner_address
    amount
    current_token_data { token_name token_uri collection_id token_properties }
  }
}
"""

COLLECTION_TOKENS_QUERY = """
query CollectionTokens($collection: String!, $offset: Int!, $limit: Int!) {
  current_token_datas_v2(
    where: {collection_id: {_eq: $collection}}
    order_by: {token_data_id: asc}
    offset: $offset
    limit: $limit
  ) {
    token_data_id token_name token_uri collection_id token_properties
  }
}
"""

DIGITAL_ASSET_QUERY = """
query DigitalAsset($token: String!) {
  current_token_datas_v2(where: {token_data_id: {_eq: $token}}, limit: 1) {
    token_data_id token_name token_standard token_uri description collection_id
    supply maximum largest_property_version_v1 token_properties
  }
}
"""

COLLECTION_DATA_QUERY = """
query CollectionData($creator: String!, $name: String!) {
  current_collections_v2(where: {creator_address: {_eq: $creator}, collection_name: {_eq: $name}}, limit: 1) {
    collection_id collection_name creator_address total_minted_v2 current_supply max_supply description
  }
}
"""

TOKEN_ACTIVITIES_QUERY = """
query TokenActivities($token: String!, $limit: Int!) {
  token_activities_v2(
    where: {token_data_id: {_eq: $token}}
    order_by: {transaction_version: asc}
    limit: $limit
  ) {
    token_data_id type from_address to_address transaction_version transaction_timestamp
  }
}
"""


@dataclass(frozen=True)
class AptosConfig:
    node_url: str
    indexer_url: str
    api_key: str = ""
    timeout_s: float = 20.0
    user_agent: str = "nftrecon/0.1"

    @classmethod
    def from_settings(cls, settings: Any) -> "AptosConfig":
        return cls(
            node_url=settings.node_url,
            indexer_url=settings.indexer_url,
            api_key=settings.api_key,
            timeout_s=settings.timeout_s,
            user_agent=settings.user_agent,
        )


def long_address(address: str) -> str:
    """0x1 -> 0x000...001 (the indexer stores the 64-hex form)."""
    a = address.strip().lower()
    if a.startswith("0x"):
        a = a[2:]
    if not a or len(a) > 64 or any(c not in "0123456789abcdef" for c in a):
        raise ValueError(f"not an account address: {address!r}")
    return "0x" + a.rjust(64, "0")


class AptosConnector(LedgerAPI):
    def __init__(self, cfg: AptosConfig):
        self.cfg = cfg

    # -------- transport --------
    def _headers(self) -> Dict[str, str]:
        h = {"User-Agent": self.cfg.user_agent, "Accept": "application/json"}
        if self.cfg.api_key:
            h["Authorization"] = f"Bearer {self.cfg.api_key}"
        return h

    def _send(self, url: str, body: Optional[Dict[str, Any]] = None) -> Any:
        headers = self._headers()
        data = None
        if body is not None:
            data = json.dumps(body).encode("utf-8")
            headers["Content-Type"] = "application/json"
        req = Request(url, data=data, headers=headers, method="POST" if body is not None else "GET")
        log.debug("http request", extra={"url": url, "method": req.get_method()})
        try:
            with urlopen(req, timeout=float(self.cfg.timeout_s)) as resp:
                raw = resp.read().decode("utf-8")
        except HTTPError as e:
            try:
                detail = e.read().decode("utf-8", errors="replace")[:500]
            except OSError:
                detail = ""
            cls = NotFoundError if e.code == 404 else LedgerError
            raise cls(f"HTTP {e.code} for {url}: {detail}", status=e.code) from e
        except URLError as e:
            raise LedgerError(f"cannot reach {url}: {e.reason}") from e
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise LedgerError(f"invalid JSON from {url}: {e}") from e

    def _rest(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        qs = urlencode({k: v for k, v in (params or {}).items() if v is not None})
        base = self.cfg.node_url.rstrip("/")
        return self._send(f"{base}{path}?{qs}" if qs else f"{base}{path}")

    def _graphql(self, query: str, variables: Dict[str, Any], root: str) -> List[Dict[str, Any]]:
        payload = self._send(self.cfg.indexer_url, {"query": query, "variables": variables})
        if not isinstance(payload, dict):
            raise LedgerError("indexer returned a non-object response")
        if payload.get("errors"):
            msgs = "; ".join(str(e.get("message", e)) for e in payload["errors"] if isinstance(e, dict))
            raise LedgerError(f"indexer query failed: {msgs or payload['errors']}")
        rows = (payload.get("data") or {}).get(root)
        if not isinstance(rows, list):
            raise LedgerError(f"indexer response has no '{root}' list")
        return rows

    # -------- transactions --------
    def account_transactions(self, address: str, *, limit: int, offset: int = 0) -> List[TransactionRecord]:
        rows = self._rest(f"/accounts/{quote(address)}/transactions", {"start": offset, "limit": limit})
        if not isinstance(rows, list):
            raise LedgerError("account transactions response is not a list")
        return normalize.transactions(rows)

    def account_transactions_since(
        self, address: str, *, limit: int, start_version: Optional[int] = None
    ) -> List[TransactionRecord]:
        rows = self._graphql(
            ACCOUNT_TRANSACTIONS_QUERY,
            {"address": long_address(address), "start": int(start_version or 0), "limit": limit},
            "account_transactions",
        )
        return normalize.transactions(rows)

    def transaction_by_hash(self, tx_hash: str) -> TransactionRecord:
        return normalize.transaction(self._rest(f"/transactions/by_hash/{quote(tx_hash)}"))

    def wait_for_transaction(self, tx_hash: str) -> TransactionRecord:
        return normalize.transaction(self._rest(f"/transactions/wait_by_hash/{quote(tx_hash)}"))

    def transaction_by_version(self, version: int) -> TransactionRecord:
        return normalize.transaction(self._rest(f"/transactions/by_version/{int(version)}"))

    # -------- tokens --------
    def owned_tokens(
        self, owner: str, *, limit: int, offset: int = 0, collection_id: Optional[str] = None
    ) -> List[TokenRecord]:
        where: Dict[str, Any] = {"owner_address": {"_eq": long_address(owner)}, "amount": {"_gt": 0}}
        if collection_id:
            where["current_token_data"] = {"collection_id": {"_eq": long_address(collection_id)}}
        rows = self._graphql(
            OWNED_TOKENS_QUERY, {"where": where, "offset": offset, "limit": limit}, "current_token_ownerships_v2"
        )
        return [normalize.owned_token(r) for r in rows]

    def collection_tokens(self, collection_id: str, *, limit: int, offset: int = 0) -> List[TokenRecord]:
        rows = self._graphql(
            COLLECTION_TOKENS_QUERY,
            {"collection": long_address(collection_id), "offset": offset, "limit": limit},
            "current_token_datas_v2",
        )
        return [normalize.collection_token(r) for r in rows]

    def digital_asset(self, token_id: str) -> AssetDetail:
        rows = self._graphql(DIGITAL_ASSET_QUERY, {"token": long_address(token_id)}, "current_token_datas_v2")
        if not rows:
            raise NotFoundError(f"digital asset {token_id} not found")
        return normalize.asset_detail(rows[0])

    def collection_data(self, creator_address: str, collection_name: str) -> CollectionData:
        rows = self._graphql(
            COLLECTION_DATA_QUERY,
            {"creator": long_address(creator_address), "name": collection_name},
            "current_collections_v2",
        )
        if not rows:
            raise NotFoundError(f"collection '{collection_name}' by {creator_address} not found")
        return normalize.collection(rows[0])

    def token_activities(self, token_id: str, *, limit: int = 100) -> List[TokenActivity]:
        rows = self._graphql(
            TOKEN_ACTIVITIES_QUERY, {"token": long_address(token_id), "limit": limit}, "token_activities_v2"
        )
        return [normalize.activity(r) for r in rows]
