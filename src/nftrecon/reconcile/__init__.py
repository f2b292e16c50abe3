from .matching import (  # noqa: F401
    Holding,
    MetadataMatch,
    SerialCheckResult,
    SerialRequest,
    check_serials,
    group_transfers_by_address,
    ipfs_hash,
    match_metadata,
    sorted_serials,
    summarize_serial_checks,
    top_addresses,
)
from .reconciler import (  # noqa: F401
    ReconciliationReport,
    SupplyReport,
    circulating_supply,
    reconcile,
    supply_report,
)
