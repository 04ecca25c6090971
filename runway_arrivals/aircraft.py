from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional

if TYPE_CHECKING:
    from runway_arrivals.rv_generation import DurationSampler
    from runway_arrivals.scenarios_config import TimingProfile
    from runway_arrivals.separation import SeparationModel


# ------------------------------------------------------
# AIRCRAFT TYPES AND STATES
# ------------------------------------------------------
class AircraftType(Enum):
    SMALL = "small"
    LARGE = "large"
    HEAVY = "heavy"

    @property
    def letter(self) -> str:
        """Single upper-case letter used in queue snapshots."""
        return self.value[0].upper()

    @classmethod
    def parse(cls, value) -> "AircraftType":
        """Accept an AircraftType or its name ("small", "LARGE", ...)."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise ValueError(f"Unknown aircraft type: {value!r}")


class AircraftState(Enum):
    CONTACTED = 1
    APPROACHING = 2
    QUEUING = 3
    CIRCLING = 4
    LANDING = 5
    DONE = 6


class AircraftEvent(Enum):
    APPROACH = "approach"
    ENQUEUE = "enqueue"
    START_CIRCLING = "start_circling"
    START_LANDING = "start_landing"
    HOLD = "hold"
    FINISH = "finish"


class InvalidTransitionError(RuntimeError):
    """Raised when an event is fired while its guard does not hold."""


# ------------------------------------------------------
# TRANSITION TABLE
# ------------------------------------------------------
# event -> (allowed source states, target state)
TRANSITIONS: dict[AircraftEvent, tuple[tuple[AircraftState, ...], AircraftState]] = {
    AircraftEvent.APPROACH: ((AircraftState.CONTACTED,), AircraftState.APPROACHING),
    AircraftEvent.ENQUEUE: ((AircraftState.APPROACHING, AircraftState.CIRCLING), AircraftState.QUEUING),
    AircraftEvent.START_CIRCLING: ((AircraftState.QUEUING,), AircraftState.CIRCLING),
    AircraftEvent.START_LANDING: ((AircraftState.QUEUING,), AircraftState.LANDING),
    AircraftEvent.HOLD: ((AircraftState.QUEUING,), AircraftState.QUEUING),
    AircraftEvent.FINISH: ((AircraftState.LANDING,), AircraftState.DONE),
}


def _ready(aircraft: "Aircraft", now: int, zone_occupied: bool) -> bool:
    return aircraft.next_transition_at == now


def _ready_zone_empty(aircraft: "Aircraft", now: int, zone_occupied: bool) -> bool:
    return aircraft.next_transition_at == now and not zone_occupied


def _ready_zone_occupied(aircraft: "Aircraft", now: int, zone_occupied: bool) -> bool:
    return aircraft.next_transition_at == now and zone_occupied


GUARDS: dict[AircraftEvent, Callable[["Aircraft", int, bool], bool]] = {
    AircraftEvent.APPROACH: _ready,
    AircraftEvent.ENQUEUE: _ready,
    AircraftEvent.START_CIRCLING: _ready_zone_occupied,
    AircraftEvent.START_LANDING: _ready_zone_empty,
    AircraftEvent.HOLD: _ready_zone_occupied,
    AircraftEvent.FINISH: _ready,
}


# ------------------------------------------------------
# AIRCRAFT
# ------------------------------------------------------
class Aircraft:
    """Arriving aircraft with a guarded state machine.

    `next_transition_at` is the absolute simulation time (seconds) at which the
    aircraft attempts its next transition. While contacted it holds the arrival time.
    """
    def __init__(self, aircraft_id: int, aircraft_type: AircraftType, arrival_time: int, flight_number: str = ""):
        if arrival_time < 0:
            raise ValueError("Arrival time must be non-negative.")
        self.aircraft_id = aircraft_id
        self.type = AircraftType.parse(aircraft_type)
        self.flight_number = flight_number
        self.arrival_time = arrival_time
        self.state = AircraftState.CONTACTED
        self.next_transition_at: int = arrival_time
        # (event, time fired, newly scheduled next_transition_at)
        self.history: list[tuple[AircraftEvent, int, Optional[int]]] = []

    @classmethod
    def generate(cls, aircraft_id: int, sampler: "DurationSampler", profile: "TimingProfile") -> "Aircraft":
        """Create an aircraft with a random type, flight number and arrival time."""
        aircraft_type = sampler.random_type()
        flight_number = sampler.random_flight_number()
        arrival_time = sampler.sample(profile.arrival_mu, profile.arrival_sigma)
        return cls(aircraft_id, aircraft_type, arrival_time, flight_number)

    def is_done(self) -> bool:
        return self.state == AircraftState.DONE

    def time_until_transition(self, now: int) -> Optional[int]:
        """Seconds until the pending transition, or None once the aircraft is done."""
        if self.is_done():
            return None
        return self.next_transition_at - now

    def may(self, event: AircraftEvent, now: int, zone_occupied: bool = False) -> bool:
        """Check whether `event` can fire at `now` without changing anything."""
        sources, _ = TRANSITIONS[event]
        if self.state not in sources:
            return False
        return GUARDS[event](self, now, zone_occupied)

    def _fire(self, event: AircraftEvent, now: int, zone_occupied: bool = False):
        if not self.may(event, now, zone_occupied):
            raise InvalidTransitionError(
                f"{self.flight_number} ({self.type.value}) cannot {event.value} at T={now}: "
                f"state={self.state.name}, next_transition_at={self.next_transition_at}, "
                f"zone_occupied={zone_occupied}")
        self.state = TRANSITIONS[event][1]

    def _schedule(self, event: AircraftEvent, now: int, at: Optional[int]):
        if at is not None:
            if at < now:
                raise InvalidTransitionError(
                    f"{self.flight_number} scheduled {event.value} into the past ({at} < {now})")
            self.next_transition_at = at
        self.history.append((event, now, at))

    # ---- transitions ----

    def approach(self, now: int, sampler: "DurationSampler", profile: "TimingProfile"):
        self._fire(AircraftEvent.APPROACH, now)
        self._schedule(AircraftEvent.APPROACH, now,
                       now + sampler.sample(profile.approach_mu, profile.approach_sigma))

    def enqueue(self, now: int, leader: Optional["Aircraft"], sampler: "DurationSampler",
                separation: "SeparationModel", profile: "TimingProfile"):
        """Join the landing queue behind `leader` (the current tail, or None if the queue is empty).

        With no leader the aircraft reaches the threshold after the minimum runway approach time.
        Otherwise its threshold time is chained to the leader's plus a type-dependent separation,
        so threshold times never decrease along the queue.
        """
        self._fire(AircraftEvent.ENQUEUE, now)
        if leader is None:
            at = now + profile.runway_approach_time
        else:
            at = leader.next_transition_at + separation.sample_separation(leader.type, self.type, sampler)
        self._schedule(AircraftEvent.ENQUEUE, now, at)

    def start_circling(self, now: int, zone_occupied: bool, sampler: "DurationSampler", profile: "TimingProfile"):
        self._fire(AircraftEvent.START_CIRCLING, now, zone_occupied)
        self._schedule(AircraftEvent.START_CIRCLING, now,
                       now + sampler.sample(profile.circling_mu, profile.circling_sigma))

    def start_landing(self, now: int, zone_occupied: bool, sampler: "DurationSampler", profile: "TimingProfile"):
        self._fire(AircraftEvent.START_LANDING, now, zone_occupied)
        self._schedule(AircraftEvent.START_LANDING, now,
                       now + sampler.sample(profile.landing_mu, profile.landing_sigma))

    def hold(self, now: int, zone_occupied: bool, release_at: int):
        """Stay at the threshold point until the runway is released."""
        self._fire(AircraftEvent.HOLD, now, zone_occupied)
        self._schedule(AircraftEvent.HOLD, now, release_at)

    def defer_to(self, at: int):
        """Push a queued aircraft's threshold time back to at least `at` (behind a holding leader)."""
        if self.state != AircraftState.QUEUING:
            raise InvalidTransitionError(f"Only queuing aircraft can be deferred, got {self.state.name}")
        self.next_transition_at = max(self.next_transition_at, at)

    def finish(self, now: int):
        self._fire(AircraftEvent.FINISH, now)
        self._schedule(AircraftEvent.FINISH, now, None)

    def __repr__(self) -> str:
        return (f"Aircraft({self.flight_number!r}, {self.type.value}, {self.state.name}, "
                f"ETA {self.next_transition_at})")
