"""Audit records of answered queries, written as log lines or CSV."""

from __future__ import annotations

import csv
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from os import PathLike
from pathlib import Path
from typing import Iterable, Union

from smartresolve.lookup import Lookup, Query

log = logging.getLogger(__name__)

CSV_HEADER = ["id", "timestamp", "client", "name", "type", "elapsed", "speed",
              "state", "result", "lookup_source"]

DurationLike = Union[timedelta, int, float]


def _to_nanos(duration: DurationLike) -> int:
    if isinstance(duration, timedelta):
        return ((duration.days * 86400 + duration.seconds) * 1_000_000
                + duration.microseconds) * 1000
    return round(duration * 1_000_000_000)


def format_duration(duration: DurationLike) -> str:
    """A duration in its most fitting unit, such as 10ms, 1.5s or 100µs."""
    nanos = _to_nanos(duration)
    for scale, digits, unit in ((1_000_000_000, 9, "s"), (1_000_000, 6, "ms"),
                                (1_000, 3, "µs")):
        if nanos >= scale:
            whole, frac = divmod(nanos, scale)
            frac_text = str(frac).rjust(digits, "0").rstrip("0")
            return f"{whole}.{frac_text}{unit}" if frac_text else f"{whole}{unit}"
    return f"{nanos}ns"


@dataclass
class AuditRecord:
    """One answered query: who asked, what, how it went and how long it took."""

    id: int
    client: str
    query: Query
    result: Union[Lookup, Exception]
    speed: DurationLike
    elapsed: DurationLike
    date: datetime
    lookup_source: str

    @property
    def succeeded(self) -> bool:
        return isinstance(self.result, Lookup)

    def format_result(self) -> str:
        """The answer's records as 'data ttl type' joined by '|', or 'query failed'."""
        if not isinstance(self.result, Lookup):
            return "query failed"
        return "|".join(f"{r.data} {r.ttl} {r.record_type}"
                        for r in self.result if r.data is not None)

    def to_string_without_date(self) -> str:
        return (f"{self.client} query {self.query.name}, type: {self.query.query_type}, "
                f"elapsed: {format_duration(self.elapsed)}, "
                f"speed: {format_duration(self.speed)}, result {self.format_result()}")

    def __str__(self) -> str:
        stamp = self.date.strftime("%Y-%m-%d %H:%M:%S")
        return f"[{stamp},{self.date.microsecond // 1000:03d}] {self.to_string_without_date()}"

    def csv_row(self) -> list:
        return [
            str(self.id),
            str(math.floor(self.date.timestamp())),
            self.client,
            self.query.name,
            str(self.query.query_type),
            format_duration(self.elapsed),
            format_duration(self.speed),
            "success" if self.succeeded else "failed",
            self.format_result(),
            self.lookup_source,
        ]


def write_audit_records(path: Union[str, PathLike], records: Iterable[AuditRecord]) -> None:
    """Append records to a file: CSV with a header for .csv files, log lines otherwise."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.suffix == ".csv":
        needs_header = not path.exists() or path.stat().st_size == 0
        with open(path, "a", newline="", encoding="utf-8") as handle:
            writer = csv.writer(handle, lineterminator="\n")
            if needs_header:
                writer.writerow(CSV_HEADER)
            for record in records:
                writer.writerow(record.csv_row())
    else:
        with open(path, "a", encoding="utf-8") as handle:
            for record in records:
                handle.write(f"{record}\n")


class AuditLog:
    """Buffers audit records and writes them to a file in batches."""

    def __init__(self, path: Union[str, PathLike], batch_size: int = 10) -> None:
        if batch_size <= 0:
            raise ValueError("batch size must be positive")
        self.path = Path(path)
        self.batch_size = batch_size
        self._buffer: list = []

    def record(self, audit: AuditRecord) -> None:
        """Queue a record; a full batch is written out."""
        self._buffer.append(audit)
        if len(self._buffer) >= self.batch_size:
            self.flush()

    def flush(self) -> None:
        """Write out every queued record."""
        if not self._buffer:
            return
        pending, self._buffer = self._buffer, []
        try:
            write_audit_records(self.path, pending)
        except OSError as err:
            log.warning("log audit failed %s", err)

    def __enter__(self) -> "AuditLog":
        return self

    def __exit__(self, *exc_info) -> None:
        self.flush()