from __future__ import annotations

import json
import logging
import os
import sys
import time
from dataclasses import asdict, dataclass, field
from typing import Callable, Mapping, Protocol, TextIO, TypeVar
from urllib.parse import urlsplit

from kafka import KafkaProducer
from kafka.errors import KafkaError, NoBrokersAvailable

from .errors import ConfigurationError, MetricsError

DEFAULT_METRICS_TOPIC = "confbench-samples"
SEND_TIMEOUT_S = 30
CONNECT_DEADLINE_S = 60

T = TypeVar("T")


@dataclass(frozen=True)
class BenchmarkSample:
    value: int
    metric: str
    tags: dict[str, str] = field(default_factory=dict)
    timestamp_ms: int = 0
    pid: int = 0

    def to_payload(self) -> dict[str, object]:
        return asdict(self)


class MetricsSink(Protocol):
    def send_tagged(self, value: int, metric: str, tags: Mapping[str, str]) -> None: ...

    def close(self) -> None: ...


def _make_sample(value: int, metric: str, tags: Mapping[str, str]) -> BenchmarkSample:
    return BenchmarkSample(
        value=int(value),
        metric=metric,
        tags=dict(tags),
        timestamp_ms=int(time.time() * 1000),
        pid=os.getpid(),
    )


def connect_with_backoff(
    connect: Callable[[], T],
    deadline_s: float = CONNECT_DEADLINE_S,
    clock: Callable[[], float] = time.time,
    sleep: Callable[[float], object] = time.sleep,
) -> T:
    """Call ``connect`` until a broker answers or ``deadline_s`` runs out."""
    backoff = 1.0
    max_backoff = 10.0
    deadline = clock() + deadline_s

    while True:
        try:
            return connect()
        except NoBrokersAvailable as exc:
            if clock() >= deadline:
                raise MetricsError(
                    f"failed to connect to Kafka broker within {deadline_s:g} seconds"
                ) from exc

            sleep(backoff)
            backoff = min(backoff * 1.5, max_backoff)


def create_producer(broker: str) -> KafkaProducer:
    return connect_with_backoff(
        lambda: KafkaProducer(
            bootstrap_servers=broker,
            key_serializer=lambda v: v.encode("utf-8") if v else None,
            value_serializer=lambda v: json.dumps(v).encode("utf-8"),
        )
    )


class KafkaMetrics:
    """Publishes every sample as a JSON message keyed by metric name."""

    def __init__(self, producer: KafkaProducer, topic: str, logger: logging.Logger) -> None:
        self._producer = producer
        self._topic = topic
        self._logger = logger

    def send_tagged(self, value: int, metric: str, tags: Mapping[str, str]) -> None:
        sample = _make_sample(value, metric, tags)
        try:
            future = self._producer.send(self._topic, key=metric, value=sample.to_payload())
            future.get(timeout=SEND_TIMEOUT_S)
        except KafkaError as exc:
            raise MetricsError(f"failed to publish '{metric}' sample: {exc!r}") from exc
        self._logger.info("Sent %s=%d to topic %s", metric, sample.value, self._topic)

    def close(self) -> None:
        self._producer.flush()
        self._producer.close()


class StdoutMetrics:
    """Prints one JSON line per sample."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    def send_tagged(self, value: int, metric: str, tags: Mapping[str, str]) -> None:
        sample = _make_sample(value, metric, tags)
        stream = self._stream or sys.stdout
        try:
            # Single write per line, clients share stdout.
            stream.write(json.dumps(sample.to_payload()) + "\n")
            stream.flush()
        except OSError as exc:
            raise MetricsError(f"failed to write '{metric}' sample: {exc}") from exc

    def close(self) -> None:
        pass


def create_metrics(uri: str, logger: logging.Logger) -> MetricsSink:
    parts = urlsplit(uri)
    if parts.scheme == "kafka":
        if not parts.netloc:
            raise ConfigurationError(f"Kafka URI '{uri}' has no broker")
        topic = parts.path.strip("/") or DEFAULT_METRICS_TOPIC
        return KafkaMetrics(create_producer(parts.netloc), topic, logger)
    if parts.scheme == "stdout":
        return StdoutMetrics()
    raise ConfigurationError(f"Unsupported monitoring URI scheme '{parts.scheme}' in '{uri}'")


__all__ = [
    "BenchmarkSample",
    "KafkaMetrics",
    "MetricsSink",
    "StdoutMetrics",
    "create_metrics",
    "connect_with_backoff",
    "create_producer",
]
