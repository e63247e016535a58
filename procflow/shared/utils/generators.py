"""Identifier generators (CUID2 primary keys, node keys for generated graphs)."""

from cuid2 import cuid_wrapper

cuid_generator = cuid_wrapper()


def generate_cuid() -> str:
    """Generate a collision-resistant unique identifier (CUID2).

    Returns:
        A new CUID string.
    """
    result = cuid_generator()
    if not isinstance(result, str):
        raise TypeError(
            f"Expected str from cuid_generator, got {type(result).__name__}"
        )
    return result


def block_node_key(index: int) -> str:
    """Return the node key of the standard block at position index in a generated graph."""
    return f"block-{index}"


def branch_handle(index: int) -> str:
    """Return the fork source handle for branch index (branch-0 .. branch-N-1)."""
    return f"branch-{index}"
