"""Shared utilities: datetime and identifier generators."""

from procflow.shared.utils.datetime import (
    due_date_after,
    utc_now,
    utc_today,
)
from procflow.shared.utils.generators import (
    block_node_key,
    branch_handle,
    generate_cuid,
)

__all__ = [
    "generate_cuid",
    "block_node_key",
    "branch_handle",
    "utc_now",
    "utc_today",
    "due_date_after",
]
