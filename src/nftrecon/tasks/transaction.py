from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from nftrecon.ledger import normalize
from nftrecon.ledger.client import AsyncLedger, resolve_transaction
from nftrecon.ledger.types import TokenEvent, TransactionRecord, TransferEvent
from nftrecon.logging import get_logger

log = get_logger("nftrecon.tasks")


@dataclass
class TransactionAnalysis:
    transaction: TransactionRecord
    strategy: str
    tokens: List[TokenEvent] = field(default_factory=list)
    transfers: List[TransferEvent] = field(default_factory=list)
    attempts: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        tx = self.transaction
        return {
            "transactionHash": tx.hash,
            "transactionVersion": tx.version,
            "timestamp": tx.timestamp,
            "success": tx.success,
            "resolvedBy": self.strategy,
            "totalTokensFound": len(self.tokens),
            "totalTransfersFound": len(self.transfers),
            "tokens": [
                {
                    "tokenId": t.token_id,
                    "collection": t.collection,
                    "name": t.name,
                    "description": t.description,
                    "uri": t.uri,
                    "eventType": t.event_type,
                    "eventData": t.data,
                }
                for t in self.tokens
            ],
            "transfers": [{"tokenId": t.token_id, "to": t.to} for t in self.transfers],
            "allEvents": list(tx.events),
        }


def extract_events(tx: TransactionRecord) -> Tuple[List[TokenEvent], List[TransferEvent]]:
    tokens: List[TokenEvent] = []
    transfers: List[TransferEvent] = []
    for i, event in enumerate(tx.events):
        if not isinstance(event, dict):
            continue
        tok = normalize.token_event(event)
        if tok:
            tokens.append(tok)
        xfer = normalize.transfer_event(event)
        if xfer:
            transfers.append(xfer)
        if not tok and not xfer:
            log.debug("event %d carries no token or transfer", i, extra={"type": event.get("type")})
    return tokens, transfers


async def analyze_transaction(ledger: AsyncLedger, tx_hash: str) -> TransactionAnalysis:
    """Tokens and transfers carried by one transaction's events."""
    resolved = await resolve_transaction(ledger, tx_hash)
    tokens, transfers = extract_events(resolved.value)
    log.info(
        "transaction %s: %d tokens, %d transfers", tx_hash[:10], len(tokens), len(transfers),
        extra={"strategy": resolved.strategy},
    )
    return TransactionAnalysis(
        transaction=resolved.value,
        strategy=resolved.strategy,
        tokens=tokens,
        transfers=transfers,
        attempts=list(resolved.attempts),
    )
