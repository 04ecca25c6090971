"""
Per-run event log: one snapshot of every queue and counter after each state change.
"""
import csv
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional

import pandas as pd

QUEUE_COLUMNS = ["FEL", "Approaching", "Landing Queue", "Circling", "Landing Zone", "Done"]

# Head-of-queue ETA column per queue (the done set has none)
ETA_COLUMNS = {
    "FEL": "Next Contact At",
    "Approaching": "Next Landing Queue ETA",
    "Landing Queue": "Next Threshold Point ETA",
    "Circling": "Next Circle Complete At",
    "Landing Zone": "Next Landing Zone ETA",
}

COUNTER_COLUMNS = ["sum(Na)", "sum(Nlq)", "sum(Nc)", "sum(Nlz)", "sum(Ntp)", "sum(Nd)"]


class EventKind(Enum):
    START = "start"
    APPROACH = "approach"
    ENQUEUE = "enqueue"
    START_CIRCLING = "start_circling"
    START_LANDING = "start_landing"
    HOLD = "hold"
    FINISH = "finish"


@dataclass(frozen=True)
class EventRecord:
    """Snapshot of the simulation right after a state-changing event.

    Queue snapshots are strings of type letters with the head of the queue on the right.
    """
    time: int
    kind: EventKind
    flight_number: str
    queues: dict[str, str]
    etas: dict[str, Optional[int]]
    n_a: int
    n_lq: int
    n_c: int
    n_lz: int
    n_tp: int
    n_d: int
    n_lq_gt_4: bool
    t_over4: int

    def as_row(self) -> dict:
        row = {"T": self.time, "Event": self.kind.value, "Flight": self.flight_number}
        for name in QUEUE_COLUMNS:
            row[name] = self.queues[name]
        for name, column in ETA_COLUMNS.items():
            row[column] = self.etas[name]
        counters = [self.n_a, self.n_lq, self.n_c, self.n_lz, self.n_tp, self.n_d]
        row.update(zip(COUNTER_COLUMNS, counters))
        row["Nlq>4"] = self.n_lq_gt_4
        row["sum(Nlq>4)"] = self.t_over4
        return row


def record_columns() -> list[str]:
    return ["T", "Event", "Flight"] + QUEUE_COLUMNS + list(ETA_COLUMNS.values()) + COUNTER_COLUMNS + ["Nlq>4", "sum(Nlq>4)"]


# ------------------------------------------------------
# EVENT LOG
# ------------------------------------------------------
class EventLog:
    """In-memory event sink."""
    def __init__(self):
        self.records: list[EventRecord] = []

    def emit(self, record: EventRecord):
        self.records.append(record)

    @property
    def last(self) -> Optional[EventRecord]:
        return self.records[-1] if self.records else None

    def kinds(self) -> list[EventKind]:
        return [record.kind for record in self.records]

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[EventRecord]:
        return iter(self.records)

    def to_dataframe(self) -> pd.DataFrame:
        df = pd.DataFrame([record.as_row() for record in self.records], columns=record_columns())
        for column in ETA_COLUMNS.values():
            df[column] = df[column].astype("Int64")
        return df

    def to_csv(self, path) -> None:
        """Write the log as quoted comma-separated fields with a header row; empty queues have ETA "--"."""
        self.to_dataframe().to_csv(path, index=False, quoting=csv.QUOTE_ALL, na_rep="--")


def read_event_log(path) -> pd.DataFrame:
    """Load a CSV written by EventLog.to_csv."""
    df = pd.read_csv(path, na_values=["--"], keep_default_na=False, dtype={name: str for name in QUEUE_COLUMNS})
    for column in ETA_COLUMNS.values():
        df[column] = df[column].astype("Int64")
    return df
