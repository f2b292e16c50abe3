"""Map upstream payloads onto the fixed record shapes.

Fullnode REST and indexer GraphQL rows disagree on field names and on which
fields are present at all. All of that variance is handled here, once, right
after fetch; nothing downstream looks at raw payloads.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional

from nftrecon.ledger.types import (
    AssetDetail,
    CollectionData,
    TokenActivity,
    TokenEvent,
    TokenRecord,
    TransactionRecord,
    TransferEvent,
)

_TOKEN_ID_KEYS = ("token", "token_id", "id")
_TRANSFER_TOKEN_KEYS = ("token", "object", "token_id", "id")
_COLLECTION_KEYS = ("collection", "collection_name")
_NAME_KEYS = ("name", "token_name")
_URI_KEYS = ("uri", "token_uri")


def _first(data: Mapping[str, Any], keys: Iterable[str]) -> Any:
    for k in keys:
        v = data.get(k)
        if v not in (None, ""):
            return v
    return None


def _as_int(v: Any) -> Optional[int]:
    if v is None or v == "":
        return None
    try:
        return int(v)
    except (TypeError, ValueError):
        return None


def _as_id(v: Any) -> Optional[str]:
    # Move object references come back as {"inner": "0x..."}
    if isinstance(v, Mapping):
        v = v.get("inner") or v.get("id")
    return None if v in (None, "") else str(v)


def transaction(raw: Mapping[str, Any]) -> TransactionRecord:
    """Normalize a fullnode transaction or an indexer `account_transactions` row."""
    payload = raw.get("payload") or {}
    if not isinstance(payload, Mapping):
        payload = {}
    # indexer rows carry the user transaction as a nested relation
    user_tx = raw.get("user_transaction") or {}
    version = _as_int(raw.get("version", raw.get("transaction_version")))
    h = raw.get("hash") or raw.get("transaction_hash") or ""
    events = raw.get("events") if isinstance(raw.get("events"), list) else []
    success = raw.get("success")
    ts = raw.get("timestamp", user_tx.get("timestamp"))
    return TransactionRecord(
        version=version,
        hash=str(h),
        type=str(raw.get("type") or ("user_transaction" if user_tx else "unknown")),
        success=bool(success) if success is not None else None,
        timestamp=(str(ts) if ts is not None else None),
        sender=raw.get("sender") or user_tx.get("sender"),
        function=payload.get("function") or user_tx.get("entry_function_id_str"),
        arguments=list(payload.get("arguments") or payload.get("function_arguments") or []),
        type_arguments=list(payload.get("type_arguments") or []),
        gas_used=(str(raw["gas_used"]) if raw.get("gas_used") is not None else None),
        vm_status=raw.get("vm_status"),
        events=list(events),
        raw=dict(raw),
    )


def transactions(rows: Iterable[Mapping[str, Any]]) -> List[TransactionRecord]:
    return [transaction(r) for r in rows]


def owned_token(raw: Mapping[str, Any]) -> TokenRecord:
    """Normalize a `current_token_ownerships_v2` row."""
    data = raw.get("current_token_data") or {}
    collection = raw.get("current_collection") or data.get("current_collection") or {}
    props = data.get("token_properties") or raw.get("token_properties") or {}
    return TokenRecord(
        token_id=str(raw.get("token_data_id") or data.get("token_data_id") or ""),
        name=data.get("token_name") or "Unknown",
        uri=data.get("token_uri") or None,
        collection_id=data.get("collection_id") or collection.get("collection_id"),
        owner=raw.get("owner_address"),
        properties=dict(props) if isinstance(props, Mapping) else {},
        raw=dict(raw),
    )


def collection_token(raw: Mapping[str, Any]) -> TokenRecord:
    """Normalize a `current_token_datas_v2` row listed by collection."""
    props = raw.get("token_properties") or {}
    return TokenRecord(
        token_id=str(raw.get("token_data_id") or ""),
        name=raw.get("token_name") or "Unknown",
        uri=raw.get("token_uri") or None,
        collection_id=raw.get("collection_id"),
        properties=dict(props) if isinstance(props, Mapping) else {},
        raw=dict(raw),
    )


def asset_detail(raw: Mapping[str, Any]) -> AssetDetail:
    props = raw.get("token_properties") or {}
    return AssetDetail(
        token_id=str(raw.get("token_data_id") or ""),
        token_name=raw.get("token_name"),
        token_standard=raw.get("token_standard"),
        token_uri=raw.get("token_uri"),
        description=raw.get("description"),
        collection_id=raw.get("collection_id"),
        supply=raw.get("supply"),
        maximum=raw.get("maximum"),
        largest_property_version_v1=raw.get("largest_property_version_v1"),
        token_properties=dict(props) if isinstance(props, Mapping) else {},
    )


def collection(raw: Mapping[str, Any]) -> CollectionData:
    return CollectionData(
        collection_id=str(raw.get("collection_id") or ""),
        collection_name=str(raw.get("collection_name") or ""),
        creator_address=raw.get("creator_address"),
        total_minted=_as_int(raw.get("total_minted_v2")) or 0,
        current_supply=_as_int(raw.get("current_supply")),
        max_supply=_as_int(raw.get("max_supply")),
        description=raw.get("description"),
    )


def activity(raw: Mapping[str, Any]) -> TokenActivity:
    return TokenActivity(
        token_id=str(raw.get("token_data_id") or ""),
        type=str(raw.get("type") or ""),
        from_address=raw.get("from_address"),
        to_address=raw.get("to_address"),
        transaction_version=_as_int(raw.get("transaction_version")),
        transaction_timestamp=raw.get("transaction_timestamp"),
    )


def token_event(event: Mapping[str, Any]) -> Optional[TokenEvent]:
    """Return the token carried by a mint / token event, or None."""
    etype = str(event.get("type") or "")
    low = etype.lower()
    if "mint" not in low and "token" not in low:
        return None
    data = event.get("data") or {}
    if not isinstance(data, Mapping):
        return None
    token_id = _as_id(_first(data, _TOKEN_ID_KEYS))
    if not token_id:
        return None
    return TokenEvent(
        token_id=token_id,
        event_type=etype,
        collection=str(_first(data, _COLLECTION_KEYS) or "Unknown"),
        name=str(_first(data, _NAME_KEYS) or "Unknown"),
        description=data.get("description"),
        uri=_first(data, _URI_KEYS),
        data=dict(data),
    )


def transfer_event(event: Mapping[str, Any]) -> Optional[TransferEvent]:
    if "transfer" not in str(event.get("type") or "").lower():
        return None
    data = event.get("data") or {}
    if not isinstance(data, Mapping):
        return None
    token_id = _as_id(_first(data, _TRANSFER_TOKEN_KEYS))
    to = data.get("to")
    if not token_id or not to:
        return None
    return TransferEvent(token_id=token_id, to=str(to))


def asset_to_dict(detail: AssetDetail) -> Dict[str, Any]:
    return {
        "tokenStandard": detail.token_standard,
        "tokenProperties": detail.token_properties,
        "supply": detail.supply,
        "maximum": detail.maximum,
        "largestPropertyVersionV1": detail.largest_property_version_v1,
        "tokenUri": detail.token_uri,
        "description": detail.description,
        "tokenName": detail.token_name,
        "collectionId": detail.collection_id,
    }
