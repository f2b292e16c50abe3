from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

# Conventional destination for permanently removed tokens.
BURN_ADDRESS = "0x" + "f" * 64

SERIAL_PROPERTY = "Serial Number"


class Network(str, Enum):
    mainnet = "mainnet"
    testnet = "testnet"
    devnet = "devnet"
    local = "local"


NETWORK_URLS: Dict[Network, Dict[str, str]] = {
    Network.mainnet: {
        "node": "https://api.mainnet.aptoslabs.com/v1",
        "indexer": "https://api.mainnet.aptoslabs.com/v1/graphql",
    },
    Network.testnet: {
        "node": "https://api.testnet.aptoslabs.com/v1",
        "indexer": "https://api.testnet.aptoslabs.com/v1/graphql",
    },
    Network.devnet: {
        "node": "https://api.devnet.aptoslabs.com/v1",
        "indexer": "https://api.devnet.aptoslabs.com/v1/graphql",
    },
    Network.local: {
        "node": "http://127.0.0.1:8080/v1",
        "indexer": "http://127.0.0.1:8090/v1/graphql",
    },
}


@dataclass(frozen=True)
class TransactionRecord:
    """One committed ledger transaction, normalized from the fullnode or indexer."""

    version: Optional[int]
    hash: str
    type: str = "unknown"
    success: Optional[bool] = None
    timestamp: Optional[str] = None
    sender: Optional[str] = None
    function: Optional[str] = None
    arguments: List[Any] = field(default_factory=list)
    type_arguments: List[Any] = field(default_factory=list)
    gas_used: Optional[str] = None
    vm_status: Optional[str] = None
    events: List[Dict[str, Any]] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def key(self) -> str:
        return self.hash


@dataclass(frozen=True)
class TokenRecord:
    """A digital asset as seen through ownership or collection listings."""

    token_id: str
    name: str = "Unknown"
    uri: Optional[str] = None
    collection_id: Optional[str] = None
    owner: Optional[str] = None
    properties: Dict[str, Any] = field(default_factory=dict)
    raw: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def key(self) -> str:
        return self.token_id

    @property
    def serial_number(self) -> Optional[str]:
        v = self.properties.get(SERIAL_PROPERTY)
        return None if v in (None, "") else str(v)


@dataclass(frozen=True)
class AssetDetail:
    """Descriptive data for one token (`current_token_datas_v2`)."""

    token_id: str
    token_name: Optional[str] = None
    token_standard: Optional[str] = None
    token_uri: Optional[str] = None
    description: Optional[str] = None
    collection_id: Optional[str] = None
    supply: Optional[Any] = None
    maximum: Optional[Any] = None
    largest_property_version_v1: Optional[Any] = None
    token_properties: Dict[str, Any] = field(default_factory=dict)

    @property
    def serial_number(self) -> Optional[str]:
        v = self.token_properties.get(SERIAL_PROPERTY)
        return None if v in (None, "") else str(v)


@dataclass(frozen=True)
class CollectionData:
    collection_id: str
    collection_name: str
    creator_address: Optional[str] = None
    total_minted: int = 0
    current_supply: Optional[int] = None
    max_supply: Optional[int] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class TokenActivity:
    token_id: str
    type: str
    from_address: Optional[str] = None
    to_address: Optional[str] = None
    transaction_version: Optional[int] = None
    transaction_timestamp: Optional[str] = None


@dataclass(frozen=True)
class TokenEvent:
    """A token-bearing event pulled out of a transaction."""

    token_id: str
    event_type: str
    collection: str = "Unknown"
    name: str = "Unknown"
    description: Optional[str] = None
    uri: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass(frozen=True)
class TransferEvent:
    token_id: str
    to: str
