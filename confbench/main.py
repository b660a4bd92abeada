from __future__ import annotations

import sys
from typing import Sequence

from .config import parse_options
from .coordinator import run
from .errors import ConfBenchError
from .logs import setup_logging


def main(argv: Sequence[str] | None = None) -> int:
    logger = setup_logging(verbose=False)
    try:
        options = parse_options(argv, logger)
        logger = setup_logging(options.verbose, options.log_level)
        return run(options, logger)
    except ConfBenchError as exc:
        print(f"FATAL: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("FATAL: interrupted", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
