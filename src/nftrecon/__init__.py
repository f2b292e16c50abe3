"""nftrecon: paginate, enrich and reconcile Aptos NFT ledger data."""

__version__ = "0.1.0"
