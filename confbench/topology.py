from __future__ import annotations

import enum
from typing import Callable, Dict

from .values import make_value, pad_index

Dataset = Dict[str, str]

SEPARATE_PREFIX = "/test/separate/key"
COMBINED_PREFIX = "/test/combined/key"
MAX_KEYS_PER_DIRECTORY = 5
TREE_CHILDREN: tuple[str, ...] = ("dirA", "dirB")


class TopologyKind(str, enum.Enum):
    """Shape of the keys a benchmark dataset is stored under."""

    SEPARATE = "separate"
    COMBINED = "combined"
    FLAT = "flat"
    TREE = "tree"

    def __str__(self) -> str:
        return self.value


def flat_path(n_parameters: int) -> str:
    return f"/test/flat{n_parameters}"


def tree_path(n_parameters: int) -> str:
    return f"/test/tree{n_parameters}"


def separate(n_parameters: int) -> Dataset:
    """One key per parameter, each read with its own request."""
    return {f"{SEPARATE_PREFIX}{i}": make_value(i) for i in range(n_parameters)}


def combined(n_parameters: int) -> Dataset:
    """All parameters packed into the value of a single key."""
    value = "".join(f"key{i}=value{pad_index(i)}|" for i in range(n_parameters))
    return {f"{COMBINED_PREFIX}{n_parameters}": value}


def flat(n_parameters: int) -> Dataset:
    """All parameters in one directory, read with a single recursive request."""
    prefix = flat_path(n_parameters)
    return {f"{prefix}/key{i}": make_value(i) for i in range(n_parameters)}


def find_tree_depth(n_parameters: int, per_directory: int = MAX_KEYS_PER_DIRECTORY) -> int:
    """Smallest depth whose full binary directory tree holds ``n_parameters`` keys."""
    depth = 0
    capacity = 0
    while True:
        capacity += (2**depth) * per_directory
        if n_parameters <= capacity:
            return depth
        depth += 1


def _fill_directory(
    path: str,
    start: int,
    n_parameters: int,
    depth: int,
    max_depth: int,
) -> tuple[Dataset, int]:
    if depth > max_depth or start >= n_parameters:
        return {}, start

    stop = min(start + MAX_KEYS_PER_DIRECTORY, n_parameters)
    fragment = {f"{path}/key{i}": make_value(i) for i in range(start, stop)}

    next_index = stop
    for child in TREE_CHILDREN:
        child_fragment, next_index = _fill_directory(
            f"{path}/{child}", next_index, n_parameters, depth + 1, max_depth
        )
        fragment.update(child_fragment)
    return fragment, next_index


def tree(n_parameters: int) -> Dataset:
    """Parameters spread over a binary directory tree, five keys per directory."""
    fragment, _ = _fill_directory(
        tree_path(n_parameters),
        start=0,
        n_parameters=n_parameters,
        depth=0,
        max_depth=find_tree_depth(n_parameters),
    )
    return fragment


GENERATORS: dict[TopologyKind, Callable[[int], Dataset]] = {
    TopologyKind.SEPARATE: separate,
    TopologyKind.COMBINED: combined,
    TopologyKind.FLAT: flat,
    TopologyKind.TREE: tree,
}


__all__ = [
    "Dataset",
    "GENERATORS",
    "TopologyKind",
    "combined",
    "find_tree_depth",
    "flat",
    "flat_path",
    "separate",
    "tree",
    "tree_path",
]
