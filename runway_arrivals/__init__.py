"""Discrete-event simulation of arrivals at a single-runway airport."""
from runway_arrivals.aircraft import Aircraft, AircraftEvent, AircraftState, AircraftType, InvalidTransitionError
from runway_arrivals.airport_arrival import (Metrics, QueueFullError, SimulationEngine, SimulationResult,
                                             TimeJumpError, run_simulation)
from runway_arrivals.event_log import EventKind, EventLog, EventRecord
from runway_arrivals.rv_generation import DurationSampler
from runway_arrivals.scenarios_config import PROFILES, SimulationConfig, TimingProfile, get_profile
from runway_arrivals.separation import SeparationModel, SeparationTableError

__version__ = "0.1.0"
