from .cache import (  # noqa: F401
    load_collections_json,
    load_csv_hashes,
    load_metadata_csv,
    load_serials_to_check,
    load_snapshot_hashes,
    load_transfer_files,
)
from .export import output_name, write_csv, write_json  # noqa: F401
