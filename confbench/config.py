from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import dataclass
from typing import Mapping, NoReturn, Sequence

from .backends import create_backend, flatten_tree
from .errors import ConfigurationError
from .handlers import get_handler
from .servers import split_server_uris
from .topology import TopologyKind

FLAG_OPTIONS = frozenset({"verbose", "skip-wait", "skip-check", "put", "print-params"})
VALUE_OPTIONS = frozenset(
    {"server-uri", "mon-uri", "n-processes", "n-parameters", "structure", "run-id", "log-level"}
)
TRUTHY = frozenset({"1", "true", "yes", "on"})


@dataclass(frozen=True)
class RunOptions:
    server_uris: tuple[str, ...]
    monitoring_uri: str
    structure: TopologyKind
    parameter_number: int
    process_number: int
    run_id: str = ""
    skip_wait: bool = False
    skip_check: bool = False
    put: bool = False
    print_params: bool = False
    verbose: bool = False
    log_level: str | None = None

    def tags(self) -> dict[str, str]:
        tags = {
            "process.number": str(self.process_number),
            "param.number": str(self.parameter_number),
            "param.structure": self.structure.value,
        }
        if self.run_id:
            tags["run.id"] = self.run_id
        return tags


class OptionParser(argparse.ArgumentParser):
    """Raises ``ConfigurationError`` on usage errors instead of exiting with status 2."""

    def error(self, message: str) -> NoReturn:
        raise ConfigurationError(message)


def build_parser(env: Mapping[str, str] | None = None) -> OptionParser:
    env = os.environ if env is None else env
    parser = OptionParser(
        prog="confbench",
        description="Benchmark a key/value configuration backend",
    )
    parser.add_argument("--verbose", action="store_true", help="Verbose output")
    parser.add_argument(
        "--args-uri",
        help="Backend URI holding program arguments. Command line options take precedence over them",
    )
    parser.add_argument(
        "--server-uri",
        default=env.get("CONFBENCH_SERVER_URI"),
        help="Server URI. Can give multiple separated by comma. Get mode picks a server "
        "based on PID, put mode puts to all servers",
    )
    parser.add_argument(
        "--mon-uri",
        default=env.get("CONFBENCH_MON_URI"),
        help="Monitoring URI, e.g. kafka://broker:9092/topic or stdout://",
    )
    parser.add_argument("--n-processes", type=int, default=1, help="Number of processes")
    parser.add_argument(
        "--n-parameters", type=int, default=1, help="Number of parameters per process"
    )
    parser.add_argument(
        "--structure",
        default=TopologyKind.SEPARATE.value,
        help="Parameter structure [" + ", ".join(kind.value for kind in TopologyKind) + "]",
    )
    parser.add_argument(
        "--run-id", default="", help="Optional extra ID for result logs, e.g. for identifying a run"
    )
    parser.add_argument(
        "--skip-wait", action="store_true", help="Skip wait until simulated start"
    )
    parser.add_argument(
        "--skip-check", action="store_true", help="Skip checking values returned from server"
    )
    parser.add_argument(
        "--put", action="store_true", help="Put to server instead of get, also skips wait"
    )
    parser.add_argument(
        "--print-params",
        action="store_true",
        help="Print the parameter data in csv format and exit",
    )
    parser.add_argument(
        "--log-level",
        default=env.get("CONFBENCH_LOG_LEVEL"),
        help="Logging level, overrides --verbose",
    )
    return parser


def tree_to_arguments(key_values: Mapping[str, str]) -> list[str]:
    """Turn ``{"/n-processes": "4", "/put": "true"}`` into command line arguments."""
    arguments: list[str] = []
    for key, value in key_values.items():
        name = key.strip("/")
        if name in FLAG_OPTIONS:
            if value.strip().lower() in TRUTHY:
                arguments.append(f"--{name}")
        elif name in VALUE_OPTIONS:
            arguments.append(f"--{name}={value}")
        else:
            raise ConfigurationError(f"Unknown argument '{name}' in arguments URI")
    return arguments


def load_uri_arguments(uri: str, logger: logging.Logger) -> list[str]:
    backend = create_backend(uri)
    key_values = flatten_tree(backend.get_recursive("/"))
    if not key_values:
        raise ConfigurationError("Arguments URI contained no arguments")
    arguments = tree_to_arguments(key_values)
    logger.info("Loaded %d arguments from %s", len(arguments), uri)
    return arguments


def options_from_namespace(args: argparse.Namespace) -> RunOptions:
    if args.n_processes < 1:
        raise ConfigurationError(f"--n-processes must be at least 1, got {args.n_processes}")
    if args.n_parameters < 0:
        raise ConfigurationError(f"--n-parameters must not be negative, got {args.n_parameters}")

    options = RunOptions(
        server_uris=split_server_uris(args.server_uri or ""),
        monitoring_uri=args.mon_uri or "",
        structure=get_handler(args.structure).kind,
        parameter_number=args.n_parameters,
        process_number=args.n_processes,
        run_id=args.run_id,
        skip_wait=args.skip_wait,
        skip_check=args.skip_check,
        put=args.put,
        print_params=args.print_params,
        verbose=args.verbose,
        log_level=args.log_level,
    )
    if not options.print_params and not options.server_uris:
        raise ConfigurationError("Must specify server URI with '--server-uri' option")
    if not options.print_params and not options.put and not options.monitoring_uri:
        raise ConfigurationError("Monitoring URI required")
    return options


def parse_options(
    argv: Sequence[str] | None,
    logger: logging.Logger,
    env: Mapping[str, str] | None = None,
) -> RunOptions:
    parser = build_parser(env)
    command_line = list(sys.argv[1:] if argv is None else argv)
    args = parser.parse_args(command_line)
    if args.args_uri:
        uri_arguments = load_uri_arguments(args.args_uri, logger)
        args = parser.parse_args(uri_arguments + command_line)
    return options_from_namespace(args)


__all__ = [
    "OptionParser",
    "RunOptions",
    "build_parser",
    "load_uri_arguments",
    "options_from_namespace",
    "parse_options",
    "tree_to_arguments",
]
