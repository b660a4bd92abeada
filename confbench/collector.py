from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import threading
import time
from pathlib import Path
from typing import Any

import pandas as pd
from kafka import KafkaConsumer

from .errors import MetricsError
from .logs import setup_logging
from .metrics import DEFAULT_METRICS_TOPIC, connect_with_backoff

LOGGER = logging.getLogger("confbench.collector")

POLL_TIMEOUT_MS_DEFAULT = 1_000
BASE_COLUMNS = ["timestamp_ms", "pid", "metric", "value"]


def create_consumer(broker: str, topic: str, group_id: str) -> KafkaConsumer:
    return connect_with_backoff(
        lambda: KafkaConsumer(
            topic,
            bootstrap_servers=broker,
            group_id=group_id,
            value_deserializer=lambda v: json.loads(v.decode("utf-8")),
            key_deserializer=lambda v: v.decode("utf-8") if v else None,
            enable_auto_commit=True,
            auto_offset_reset="latest",
        )
    )


def sample_row(payload: dict[str, Any]) -> dict[str, Any]:
    row = {column: payload.get(column) for column in BASE_COLUMNS}
    for name, value in (payload.get("tags") or {}).items():
        row[f"tag.{name}"] = value
    return row


class SampleCollector:
    """Gathers raw benchmark samples from the metrics topic."""

    def __init__(
        self,
        consumer: KafkaConsumer,
        logger: logging.Logger,
        poll_timeout_ms: int = POLL_TIMEOUT_MS_DEFAULT,
    ) -> None:
        self._consumer = consumer
        self._logger = logger
        self._poll_timeout_ms = poll_timeout_ms
        self._rows: list[dict[str, Any]] = []
        self._lock = threading.Lock()

    def collect(
        self,
        duration_s: float | None = None,
        stop_event: threading.Event | None = None,
    ) -> int:
        deadline = None if duration_s is None else time.time() + duration_s
        while deadline is None or time.time() < deadline:
            if stop_event is not None and stop_event.is_set():
                break

            records = self._consumer.poll(timeout_ms=self._poll_timeout_ms)
            if not records:
                continue

            for batch in records.values():
                for message in batch:
                    if not isinstance(message.value, dict):
                        self._logger.warning("skipping malformed sample %r", message.value)
                        continue
                    with self._lock:
                        self._rows.append(sample_row(message.value))
        return len(self._rows)

    def build_dataframe(self) -> pd.DataFrame:
        with self._lock:
            rows = list(self._rows)
        if not rows:
            return pd.DataFrame(columns=BASE_COLUMNS)
        return pd.DataFrame(rows).sort_values(["timestamp_ms", "pid"], ignore_index=True)

    def close(self) -> None:
        self._consumer.close()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Collect raw confbench samples into CSV")
    parser.add_argument(
        "--broker", default=os.environ.get("KAFKA_BROKER", "localhost:9092")
    )
    parser.add_argument(
        "--topic", default=os.environ.get("CONFBENCH_METRICS_TOPIC", DEFAULT_METRICS_TOPIC)
    )
    parser.add_argument(
        "--group-id", default=os.environ.get("KAFKA_CONSUMER_GROUP", "confbench-collector")
    )
    parser.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Seconds to collect for; runs until interrupted when omitted",
    )
    parser.add_argument(
        "--output",
        default=os.environ.get("CONFBENCH_SAMPLES_PATH", "confbench-samples.csv"),
        help="CSV file the samples are written to",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("CONFBENCH_LOG_LEVEL", "INFO"),
        help="Logging level",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(verbose=True, level=args.log_level)

    try:
        consumer = create_consumer(args.broker, args.topic, args.group_id)
    except MetricsError as exc:
        print(f"FATAL: {exc}", file=sys.stderr)
        return 1

    collector = SampleCollector(consumer, LOGGER)
    LOGGER.info("Collecting samples from %s on %s", args.topic, args.broker)
    try:
        collector.collect(args.duration)
    except KeyboardInterrupt:
        print("stopping sample collector", file=sys.stderr)
    finally:
        collector.close()

    df = collector.build_dataframe()
    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(output, index=False)
    LOGGER.info("Saved %d samples to %s", len(df), output)
    return 0


__all__ = ["SampleCollector", "create_consumer", "main", "sample_row"]


if __name__ == "__main__":
    sys.exit(main())
