from .schema import KINDS, TRIGGERS, DTYPES, ResultRow
from .store import (
    init_store,
    row_from_result,
    validate_records,
    append_results,
    load_all,
    query_kind,
    export_ndjson,
    ResultHistorySink,
)

__all__ = [
    "KINDS",
    "TRIGGERS",
    "DTYPES",
    "ResultRow",
    "init_store",
    "row_from_result",
    "validate_records",
    "append_results",
    "load_all",
    "query_kind",
    "export_ndjson",
    "ResultHistorySink",
]
