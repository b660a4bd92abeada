from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Callable, Mapping

from .backends import ConfigBackend, flatten_tree
from .errors import ConfigurationError, MissingKeyError
from .topology import GENERATORS, Dataset, TopologyKind, flat_path, tree_path
from .verify import MismatchReport, compare_datasets


class ReadProtocol(enum.Enum):
    DIRECT = "direct"
    RECURSIVE = "recursive"


@dataclass(frozen=True)
class ParameterHandler:
    """How one topology is generated, written, read back and checked."""

    kind: TopologyKind
    generate: Callable[[int], Dataset]
    protocol: ReadProtocol
    root_path: Callable[[int], str] | None = None

    def build_dataset(self, n_parameters: int) -> Dataset:
        return self.generate(n_parameters)

    def write(self, backend: ConfigBackend, n_parameters: int, logger: logging.Logger) -> Dataset:
        dataset = self.build_dataset(n_parameters)
        put_parameters(backend, dataset, logger)
        return dataset

    def read(
        self, backend: ConfigBackend, n_parameters: int, logger: logging.Logger
    ) -> tuple[Dataset, Dataset]:
        generated = self.build_dataset(n_parameters)
        if self.protocol is ReadProtocol.DIRECT:
            returned = get_parameters(backend, generated, logger)
        else:
            returned = get_parameters_recursive(backend, self.root_path(n_parameters), logger)
        return generated, returned

    def verify(
        self, generated: Mapping[str, str], returned: Mapping[str, str], logger: logging.Logger
    ) -> MismatchReport:
        return compare_datasets(generated, returned, logger)


def put_parameters(backend: ConfigBackend, dataset: Mapping[str, str], logger: logging.Logger) -> None:
    logger.info("Putting %d key-values", len(dataset))
    for key, value in dataset.items():
        logger.info(" - %s -> %s", key, value)
        backend.put_string(key, value)


def get_parameters(
    backend: ConfigBackend, keys: Mapping[str, str], logger: logging.Logger
) -> Dataset:
    logger.info("Getting %d keys", len(keys))
    returned: Dataset = {}
    for key in keys:
        logger.info(" - %s", key)
        value = backend.get_string(key)
        if value is None:
            raise MissingKeyError(key)
        returned[key] = value
    return returned


def get_parameters_recursive(backend: ConfigBackend, prefix: str, logger: logging.Logger) -> Dataset:
    logger.info("Getting recursive: %s", prefix)
    node = backend.get_recursive(prefix)
    return {prefix + path: value for path, value in flatten_tree(node).items()}


HANDLERS: dict[TopologyKind, ParameterHandler] = {
    TopologyKind.SEPARATE: ParameterHandler(
        TopologyKind.SEPARATE, GENERATORS[TopologyKind.SEPARATE], ReadProtocol.DIRECT
    ),
    TopologyKind.COMBINED: ParameterHandler(
        TopologyKind.COMBINED, GENERATORS[TopologyKind.COMBINED], ReadProtocol.DIRECT
    ),
    TopologyKind.FLAT: ParameterHandler(
        TopologyKind.FLAT, GENERATORS[TopologyKind.FLAT], ReadProtocol.RECURSIVE, flat_path
    ),
    TopologyKind.TREE: ParameterHandler(
        TopologyKind.TREE, GENERATORS[TopologyKind.TREE], ReadProtocol.RECURSIVE, tree_path
    ),
}


def get_handler(structure: TopologyKind | str) -> ParameterHandler:
    try:
        kind = TopologyKind(structure)
    except ValueError as exc:
        choices = ", ".join(item.value for item in TopologyKind)
        raise ConfigurationError(
            f"invalid structure '{structure}', expected one of: {choices}"
        ) from exc
    return HANDLERS[kind]


__all__ = [
    "HANDLERS",
    "ParameterHandler",
    "ReadProtocol",
    "get_handler",
    "get_parameters",
    "get_parameters_recursive",
    "put_parameters",
]
