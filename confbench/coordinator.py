from __future__ import annotations

import dataclasses
import logging
import multiprocessing
import sys
from dataclasses import dataclass
from typing import Callable, Mapping, TextIO

from .backends import ConfigBackend, create_backend
from .clock import now_millis, wait_until_next_interval
from .config import RunOptions
from .errors import ConfBenchError, MetricsError, SpawnError
from .handlers import get_handler
from .logs import setup_logging
from .metrics import MetricsSink, create_metrics
from .servers import select_server
from .verify import MismatchReport

BackendFactory = Callable[[str], ConfigBackend]
MetricsFactory = Callable[[str, logging.Logger], MetricsSink]
WaitFunction = Callable[[logging.Logger], object]


@dataclass
class ClientResult:
    server_uri: str
    start_ms: int
    end_ms: int
    report: MismatchReport | None = None

    @property
    def duration_ms(self) -> int:
        return self.end_ms - self.start_ms

    @property
    def mismatches(self) -> int:
        return self.report.count if self.report is not None else 0


def print_dataset(dataset: Mapping[str, str], stream: TextIO | None = None) -> None:
    stream = stream or sys.stdout
    for key, value in dataset.items():
        print(f"{key},{value}", file=stream)


def log_dataset(logger: logging.Logger, title: str, dataset: Mapping[str, str]) -> None:
    logger.info("# %s", title)
    for key, value in dataset.items():
        logger.info("%s,%s", key, value)


def run_put(
    options: RunOptions,
    logger: logging.Logger,
    backend_factory: BackendFactory = create_backend,
) -> None:
    """Write the dataset to every configured server."""
    handler = get_handler(options.structure)
    logger.info(
        "Putting '%d' parameters to servers %s",
        options.parameter_number,
        ", ".join(f"'{uri}'" for uri in options.server_uris),
    )
    for uri in options.server_uris:
        handler.write(backend_factory(uri), options.parameter_number, logger)


def report_samples(
    metrics: MetricsSink,
    options: RunOptions,
    result: ClientResult,
) -> None:
    tags = options.tags()
    try:
        metrics.send_tagged(result.start_ms, "time", tags)
        metrics.send_tagged(result.end_ms, "time", tags)
        if result.mismatches > 0:
            metrics.send_tagged(result.mismatches, "mismatches", tags)
    except MetricsError as exc:
        raise MetricsError(f"Failed to send monitoring data - {exc}") from exc


def run_client(
    options: RunOptions,
    logger: logging.Logger,
    backend_factory: BackendFactory = create_backend,
    metrics_factory: MetricsFactory = create_metrics,
    wait: WaitFunction = wait_until_next_interval,
) -> ClientResult:
    """Run one get client: wait, timed read, verify, report."""
    handler = get_handler(options.structure)
    metrics = metrics_factory(options.monitoring_uri, logger)
    try:
        if not options.skip_wait:
            logger.info("Waiting until next interval")
            wait(logger)

        logger.info("Getting from server")
        server_uri = select_server(options.server_uris, logger)
        backend = backend_factory(server_uri)
        start_ms = now_millis()
        generated, returned = handler.read(backend, options.parameter_number, logger)
        end_ms = now_millis()
        result = ClientResult(server_uri=server_uri, start_ms=start_ms, end_ms=end_ms)

        if not options.skip_check:
            logger.info("Checking parameters")
            result.report = handler.verify(generated, returned, logger)
            if result.mismatches > 0:
                print(f"Mismatches found: {result.mismatches}")

        report_samples(metrics, options, result)
        logger.info("Read took %d ms from %s", result.duration_ms, server_uri)

        if result.report is not None and options.verbose:
            log_dataset(logger, "Generated", generated)
            log_dataset(logger, "Returned", returned)
        return result
    finally:
        metrics.close()


def _client_process(options: RunOptions) -> None:
    logger = setup_logging(verbose=False)
    try:
        run_client(options, logger)
    except ConfBenchError as exc:
        print(f"FATAL: {exc}", file=sys.stderr)
        sys.exit(1)


def spawn_clients(
    options: RunOptions,
    count: int,
    target: Callable[[RunOptions], None] = _client_process,
) -> list[multiprocessing.Process]:
    child_options = dataclasses.replace(options, verbose=False, log_level=None)
    processes: list[multiprocessing.Process] = []
    for index in range(1, count + 1):
        process = multiprocessing.Process(
            target=target,
            args=(child_options,),
            name=f"confbench-client-{index}",
        )
        try:
            process.start()
        except OSError as exc:
            raise SpawnError(f"Fork error: {exc}") from exc
        processes.append(process)
    return processes


def join_clients(processes: list[multiprocessing.Process], logger: logging.Logger) -> None:
    failed = []
    for process in processes:
        process.join()
        if process.exitcode != 0:
            logger.warning("Client %s exited with code %s", process.name, process.exitcode)
            failed.append(process.name)
    if failed:
        raise SpawnError(f"{len(failed)} of {len(processes)} client processes failed")


def run_get(
    options: RunOptions,
    logger: logging.Logger,
    backend_factory: BackendFactory = create_backend,
    metrics_factory: MetricsFactory = create_metrics,
    wait: WaitFunction = wait_until_next_interval,
) -> ClientResult:
    children: list[multiprocessing.Process] = []
    if options.process_number > 1:
        logger.info("Forking to get %d processes", options.process_number)
        children = spawn_clients(options, options.process_number - 1)

    try:
        result = run_client(options, logger, backend_factory, metrics_factory, wait)
    except ConfBenchError:
        for process in children:
            process.join()
        raise
    join_clients(children, logger)
    return result


def run(options: RunOptions, logger: logging.Logger) -> int:
    handler = get_handler(options.structure)
    if options.print_params:
        logger.info("Printing parameters")
        print_dataset(handler.build_dataset(options.parameter_number))
    elif options.put:
        run_put(options, logger)
    else:
        run_get(options, logger)
    return 0


__all__ = [
    "ClientResult",
    "print_dataset",
    "report_samples",
    "run",
    "run_client",
    "run_get",
    "run_put",
    "spawn_clients",
]
