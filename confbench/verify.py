from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Mapping


@dataclass
class MismatchReport:
    generated_size: int
    returned_size: int
    missing: list[str] = field(default_factory=list)
    divergent: list[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.missing) + len(self.divergent)

    @property
    def size_mismatch(self) -> bool:
        return self.generated_size != self.returned_size


def compare_datasets(
    generated: Mapping[str, str],
    returned: Mapping[str, str],
    logger: logging.Logger,
) -> MismatchReport:
    """Compare the dataset that was written against the one read back.

    Only keys of ``generated`` are checked; anything present solely in
    ``returned`` is ignored. A size difference is logged but not counted.
    """
    report = MismatchReport(generated_size=len(generated), returned_size=len(returned))

    if report.size_mismatch:
        logger.info(
            "Mismatch of size generated:%d returned:%d",
            report.generated_size,
            report.returned_size,
        )

    for key, expected in generated.items():
        if key not in returned:
            report.missing.append(key)
            logger.info("Mismatch for key:%s not found in returned list", key)
            continue
        if returned[key] != expected:
            report.divergent.append(key)
            logger.info(
                "Mismatch for key:%s expected:%s returned:%s", key, expected, returned[key]
            )

    return report


__all__ = ["MismatchReport", "compare_datasets"]
