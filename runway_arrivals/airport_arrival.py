"""
Discrete-event simulation of a single-runway airport, from first contact to runway exit.

The clock jumps straight to the next instant at which some aircraft has a pending
transition. Every tick drains five phases in a fixed order so that instantaneous
cascades resolve before time advances.
"""
import logging
from dataclasses import dataclass, field
from typing import Iterator, Optional

from runway_arrivals.aircraft import Aircraft, AircraftEvent, AircraftState
from runway_arrivals.event_log import EventKind, EventLog, EventRecord
from runway_arrivals.rv_generation import DurationSampler
from runway_arrivals.scenarios_config import SimulationConfig
from runway_arrivals.separation import SeparationModel

logger = logging.getLogger(__name__)

# Landing queue length above which time is accumulated in T_over4
QUEUE_LENGTH_THRESHOLD = 4


class TimeJumpError(RuntimeError):
    """Raised when the next event time lies before the current simulation time."""


class QueueFullError(RuntimeError):
    """Raised when an aircraft is added to a queue that is at capacity."""


# ------------------------------------------------------
# AIRCRAFT QUEUE
# ------------------------------------------------------
class AircraftQueue:
    """Ordered collection of aircraft; index 0 is the head."""
    def __init__(self, name: str, capacity: Optional[int] = None):
        self.name = name
        self.capacity = capacity
        self.aircraft: list[Aircraft] = []

    def __len__(self) -> int:
        return len(self.aircraft)

    def __iter__(self) -> Iterator[Aircraft]:
        return iter(self.aircraft)

    def is_empty(self) -> bool:
        return not self.aircraft

    def is_full(self) -> bool:
        return self.capacity is not None and len(self.aircraft) >= self.capacity

    @property
    def head(self) -> Optional[Aircraft]:
        return self.aircraft[0] if self.aircraft else None

    @property
    def tail(self) -> Optional[Aircraft]:
        return self.aircraft[-1] if self.aircraft else None

    def head_eta(self) -> Optional[int]:
        return self.aircraft[0].next_transition_at if self.aircraft else None

    def append(self, aircraft: Aircraft):
        if self.is_full():
            raise QueueFullError(f"{self.name} is full (capacity {self.capacity}), cannot add {aircraft!r}")
        self.aircraft.append(aircraft)

    def pop_head(self) -> Aircraft:
        return self.aircraft.pop(0)

    def sort(self):
        """Stable sort by next transition time, so ties keep their insertion order."""
        self.aircraft.sort(key=lambda a: a.next_transition_at)

    def is_sorted(self) -> bool:
        times = [a.next_transition_at for a in self.aircraft]
        return all(earlier <= later for earlier, later in zip(times, times[1:]))

    def to_string(self) -> str:
        """Type letters with the head of the queue on the right."""
        return "".join(a.type.letter for a in reversed(self.aircraft))

    def __repr__(self) -> str:
        return f"{self.name}[{', '.join(repr(a) for a in self.aircraft)}]"


# --------------------------------------------------
# METRICS COLLECTION
# --------------------------------------------------
class Metrics:
    """Event counters and the landing-queue-over-threshold time integral."""
    def __init__(self):
        self.n_a: int = 0    # approaches
        self.n_lq: int = 0   # landing queue entries
        self.n_c: int = 0    # circling diversions
        self.n_lz: int = 0   # landing zone entries
        self.n_tp: int = 0   # threshold point arrivals
        self.n_d: int = 0    # runway exits
        self.n_h: int = 0    # holds at the threshold point

        self.n_lq_gt_4: bool = False
        self.n_lq_gt_4_since: Optional[int] = None
        self.t_over4: int = 0

    def update_queue_length_statistic(self, current_time: int, landing_queue_length: int):
        over = landing_queue_length > QUEUE_LENGTH_THRESHOLD
        if over and not self.n_lq_gt_4:
            self.n_lq_gt_4_since = current_time
        elif not over and self.n_lq_gt_4:
            self.t_over4 += current_time - self.n_lq_gt_4_since
            self.n_lq_gt_4_since = None
        self.n_lq_gt_4 = over

    def t_over4_at(self, current_time: int) -> int:
        """T_over4 including a still-open interval up to `current_time`."""
        if self.n_lq_gt_4:
            return self.t_over4 + current_time - self.n_lq_gt_4_since
        return self.t_over4

    def counters(self) -> dict[str, int]:
        return {
            "n_a": self.n_a,
            "n_lq": self.n_lq,
            "n_c": self.n_c,
            "n_lz": self.n_lz,
            "n_tp": self.n_tp,
            "n_d": self.n_d,
            "n_h": self.n_h,
        }


@dataclass
class SimulationResult:
    final_time: int
    completed: bool
    arrival_count: int
    counters: dict[str, int]
    t_over4: int
    sink: object = field(repr=False, default=None)

    def kpis(self) -> dict[str, float]:
        """Final counters plus derived rates, one flat dictionary per run."""
        kpis: dict[str, float] = {"final_time": self.final_time, "done": self.counters["n_d"]}
        kpis.update(self.counters)
        kpis["t_over4"] = self.t_over4
        kpis["circling_ratio"] = self.counters["n_c"] / self.counters["n_tp"] if self.counters["n_tp"] > 0 else 0.0
        kpis["throughput_per_hour"] = self.counters["n_d"] * 3600 / self.final_time if self.final_time > 0 else 0.0
        return kpis


# --------------------------------------------------
# SIMULATION ENGINE
# --------------------------------------------------
class SimulationEngine:
    """Runs one arrival simulation for a given configuration."""
    def __init__(self, config: SimulationConfig, sink=None, separation: Optional[SeparationModel] = None,
                 arrivals: Optional[list[Aircraft]] = None):
        if separation is not None and (config.separation_mean is not None or config.separation_sd is not None):
            raise ValueError("Pass either a separation model or separation table overrides, not both")

        self.config = config
        self.profile = config.profile
        self.arrival_count = config.arrival_count
        self.duration = config.duration
        self.sampler = DurationSampler(config.seed)
        # Tables are validated here, before anything runs
        self.separation = separation if separation is not None else SeparationModel(config.separation_mean,
                                                                                     config.separation_sd)
        self.sink = sink if sink is not None else EventLog()
        self.metrics = Metrics()

        self.current_time: int = 0
        self.jump_history: list[int] = []
        self.has_run = False

        self.future_arrivals = AircraftQueue("FEL")
        self.approaching_queue = AircraftQueue("Approaching")
        self.landing_queue = AircraftQueue("Landing Queue")
        self.circling_queue = AircraftQueue("Circling")
        self.landing_zone = AircraftQueue("Landing Zone", capacity=1)
        self.done_queue = AircraftQueue("Done")

        if arrivals is None:
            arrivals = [Aircraft.generate(i, self.sampler, self.profile) for i in range(self.arrival_count)]
        else:
            if len(arrivals) != self.arrival_count:
                raise ValueError(f"Expected {self.arrival_count} arrivals, got {len(arrivals)}")
            if len({id(a) for a in arrivals}) != len(arrivals):
                raise ValueError("The same aircraft appears more than once in the arrivals")
            if any(a.state != AircraftState.CONTACTED for a in arrivals):
                raise ValueError("Injected arrivals must not have been contacted yet")

        # First future arrival at the front of the queue
        for aircraft in sorted(arrivals, key=lambda a: a.next_transition_at):
            self.future_arrivals.append(aircraft)

    # ---- queues and bookkeeping ----

    def queues(self) -> list[AircraftQueue]:
        return [self.future_arrivals, self.approaching_queue, self.landing_queue,
                self.circling_queue, self.landing_zone, self.done_queue]

    def zone_occupied(self) -> bool:
        return len(self.landing_zone) == 1

    def all_aircraft_processed(self) -> bool:
        return len(self.done_queue) == self.arrival_count

    def emit(self, kind: EventKind, aircraft: Optional[Aircraft] = None):
        """Update the queue length statistic and hand a snapshot to the sink."""
        self.metrics.update_queue_length_statistic(self.current_time, len(self.landing_queue))
        m = self.metrics
        record = EventRecord(
            time=self.current_time,
            kind=kind,
            flight_number=aircraft.flight_number if aircraft is not None else "",
            queues={queue.name: queue.to_string() for queue in self.queues()},
            etas={queue.name: queue.head_eta() for queue in self.queues()[:-1]},
            n_a=m.n_a, n_lq=m.n_lq, n_c=m.n_c, n_lz=m.n_lz, n_tp=m.n_tp, n_d=m.n_d,
            n_lq_gt_4=m.n_lq_gt_4,
            t_over4=m.t_over4,
        )
        if aircraft is not None:
            logger.debug("T=%d %s %s -> %s (next at %s)", self.current_time, kind.value, aircraft.flight_number,
                         aircraft.state.name, aircraft.next_transition_at)
        self.sink.emit(record)

    # ---- phases ----

    def process_arrivals(self):
        """Move aircraft making first contact now from the future arrivals to the approach."""
        while self.future_arrivals.head is not None and self.future_arrivals.head.may(AircraftEvent.APPROACH, self.current_time):
            aircraft = self.future_arrivals.head
            aircraft.approach(self.current_time, self.sampler, self.profile)
            self.approaching_queue.append(self.future_arrivals.pop_head())
            self.approaching_queue.sort()
            self.metrics.n_a += 1
            self.emit(EventKind.APPROACH, aircraft)

    def _enqueue_from(self, queue: AircraftQueue):
        while queue.head is not None and queue.head.may(AircraftEvent.ENQUEUE, self.current_time):
            aircraft = queue.head
            aircraft.enqueue(self.current_time, self.landing_queue.tail, self.sampler, self.separation, self.profile)
            self.landing_queue.append(queue.pop_head())
            self.metrics.n_lq += 1
            self.emit(EventKind.ENQUEUE, aircraft)

    def process_circling(self):
        """Rejoin the landing queue after a completed circle."""
        self._enqueue_from(self.circling_queue)

    def process_approaching(self):
        self._enqueue_from(self.approaching_queue)

    def process_landing_zone(self):
        while self.landing_zone.head is not None and self.landing_zone.head.may(AircraftEvent.FINISH, self.current_time):
            aircraft = self.landing_zone.head
            aircraft.finish(self.current_time)
            self.done_queue.append(self.landing_zone.pop_head())
            self.metrics.n_d += 1
            self.emit(EventKind.FINISH, aircraft)

    def process_queuing(self):
        """Resolve the aircraft at the threshold point: land if the runway is free, else circle (or hold)."""
        while (self.landing_queue.head is not None and not self.zone_occupied()
               and self.landing_queue.head.may(AircraftEvent.START_LANDING, self.current_time, False)):
            aircraft = self.landing_queue.head
            aircraft.start_landing(self.current_time, False, self.sampler, self.profile)
            self.landing_zone.append(self.landing_queue.pop_head())
            self.metrics.n_lz += 1
            self.metrics.n_tp += 1
            self.emit(EventKind.START_LANDING, aircraft)

        if not self.profile.circling_enabled:
            self.hold_at_threshold()
            return

        # Any other aircraft that are ready to land must circle if the landing zone is occupied
        while (self.landing_queue.head is not None and self.zone_occupied()
               and self.landing_queue.head.may(AircraftEvent.START_CIRCLING, self.current_time, True)):
            aircraft = self.landing_queue.head
            aircraft.start_circling(self.current_time, True, self.sampler, self.profile)
            self.circling_queue.append(self.landing_queue.pop_head())
            self.circling_queue.sort()
            self.metrics.n_c += 1
            self.metrics.n_tp += 1
            self.emit(EventKind.START_CIRCLING, aircraft)

    def hold_at_threshold(self):
        """Without a circling path the threshold aircraft waits for the runway release.

        Every aircraft queued behind it is pushed back to at least the same time, which
        keeps the landing queue ordered.
        """
        head = self.landing_queue.head
        if head is None or not head.may(AircraftEvent.HOLD, self.current_time, self.zone_occupied()):
            return
        release_at = self.landing_zone.head.next_transition_at
        head.hold(self.current_time, True, release_at)
        for follower in list(self.landing_queue)[1:]:
            follower.defer_to(release_at)
        self.metrics.n_h += 1
        self.emit(EventKind.HOLD, head)

    # ---- time advancement ----

    def next_up(self) -> list[Optional[int]]:
        """Seconds until the head of each transient queue transitions (None for empty queues)."""
        queues = [self.future_arrivals, self.approaching_queue, self.circling_queue,
                  self.landing_queue, self.landing_zone]
        return [queue.head.time_until_transition(self.current_time) if queue.head is not None else None
                for queue in queues]

    def time_jump(self) -> int:
        """Time of the next event across all queues, or one second later if nothing is pending."""
        waits = [wait for wait in self.next_up() if wait is not None]
        jump_to_time = self.current_time + (min(waits) if waits else 1)
        if jump_to_time < self.current_time:
            raise TimeJumpError(f"Next event at T={jump_to_time} lies before the current time "
                                f"T={self.current_time}\n{self.describe_state()}")
        return jump_to_time

    def tick(self):
        self.process_arrivals()
        self.process_circling()
        self.process_approaching()
        self.process_landing_zone()
        self.process_queuing()
        if self.all_aircraft_processed():
            return
        self.current_time = self.time_jump()
        self.jump_history.append(self.current_time)

    def event_loop(self) -> SimulationResult:
        """Run until every aircraft is done or the configured duration is reached."""
        if self.has_run:
            raise RuntimeError("This engine has already run; create a new one for another run")
        self.has_run = True

        try:
            self.separation.scale_mean_by(self.config.mean_scale)
            self.separation.scale_sd_by(self.config.sd_scale)
            self.emit(EventKind.START)
            while (self.duration is None or self.current_time < self.duration) and not self.all_aircraft_processed():
                self.tick()
        finally:
            self.separation.reset()

        logger.info("Simulation complete at %d (%d/%d aircraft done)", self.current_time,
                    len(self.done_queue), self.arrival_count)
        return self.result()

    def result(self) -> SimulationResult:
        # A run cut off by its duration is reported up to the cutoff
        end_time = self.current_time if self.duration is None else min(self.current_time, self.duration)
        return SimulationResult(
            final_time=end_time,
            completed=self.all_aircraft_processed(),
            arrival_count=self.arrival_count,
            counters=self.metrics.counters(),
            t_over4=self.metrics.t_over4_at(end_time),
            sink=self.sink,
        )

    def describe_state(self) -> str:
        lines = [f"T={self.current_time}"]
        lines += [repr(queue) for queue in self.queues()]
        lines.append(f"counters={self.metrics.counters()} t_over4={self.metrics.t_over4}")
        return "\n".join(lines)

    def print_statistics(self, verbose: bool = True):
        """Print simulation statistics."""
        kpis = self.result().kpis()
        if not verbose:
            return kpis

        print(f"\n{'='*60}")
        print(f"SIMULATION STATISTICS ({self.profile.name} profile)")
        print(f"{'='*60}")

        print(f"\n--- General Statistics ---")
        print(f"Final Simulation Time: {kpis['final_time']} s")
        print(f"Aircraft Done: {len(self.done_queue)}/{self.arrival_count}")
        print(f"Throughput: {kpis['throughput_per_hour']:.2f} aircraft/hour")

        print(f"\n--- Event Counters ---")
        print(f"Approaches (Na): {self.metrics.n_a}")
        print(f"Landing Queue Entries (Nlq): {self.metrics.n_lq}")
        print(f"Circling Diversions (Nc): {self.metrics.n_c}")
        print(f"Landing Zone Entries (Nlz): {self.metrics.n_lz}")
        print(f"Threshold Point Arrivals (Ntp): {self.metrics.n_tp}")
        print(f"Runway Exits (Nd): {self.metrics.n_d}")
        if not self.profile.circling_enabled:
            print(f"Threshold Holds: {self.metrics.n_h}")

        print(f"\n--- Landing Queue ---")
        print(f"Time With More Than {QUEUE_LENGTH_THRESHOLD} Queued: {kpis['t_over4']} s")
        print(f"Circling Ratio: {kpis['circling_ratio']*100:.2f}%")

        print(f"\n{'='*60}")
        return None


def run_simulation(config: SimulationConfig, sink=None, separation: Optional[SeparationModel] = None) -> SimulationResult:
    """Build an engine for `config`, run it and return the result."""
    engine = SimulationEngine(config, sink=sink, separation=separation)
    return engine.event_loop()
