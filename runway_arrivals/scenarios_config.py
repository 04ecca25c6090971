"""
Single-Runway Arrival Simulation - Timing Profiles and Run Configuration

Historical variants of the arrival model disagree on the landing-duration distribution
and on whether an aircraft finding the runway occupied circles or holds. Each variant
is kept as a named profile instead of picking one as canonical.

All times are in seconds.
"""
import math
from dataclasses import dataclass, field, fields
from typing import Mapping, Optional


# ==============================================================================
# PROFILE 1: STANDARD - Long runway occupancy with circling
# ==============================================================================
PROFILE_STANDARD = {
    "name": "standard",
    "description": "Runway occupancy N(750, 150); an aircraft reaching the threshold while the runway is occupied circles for N(750, 150) and rejoins the landing queue",

    # Initial contact
    "ARRIVAL_MU": 180,
    "ARRIVAL_SIGMA": 60,

    # Approach to the landing queue
    "APPROACH_MU": 600,
    "APPROACH_SIGMA": 150,

    # Minimum runway-approach separation when the landing queue is empty
    "RUNWAY_APPROACH_TIME": 40,

    # Missed approach
    "CIRCLING_ENABLED": True,
    "CIRCLING_MU": 750,
    "CIRCLING_SIGMA": 150,

    # Runway occupancy
    "LANDING_MU": 750,
    "LANDING_SIGMA": 150,
}


# ==============================================================================
# PROFILE 2: SHORT LANDING - Short runway occupancy with circling
# ==============================================================================
PROFILE_SHORT_LANDING = {
    "name": "short_landing",
    "description": "Runway occupancy N(120, 30); circling as in the standard profile",
    "ARRIVAL_MU": 180,
    "ARRIVAL_SIGMA": 60,
    "APPROACH_MU": 600,
    "APPROACH_SIGMA": 150,
    "RUNWAY_APPROACH_TIME": 40,
    "CIRCLING_ENABLED": True,
    "CIRCLING_MU": 750,
    "CIRCLING_SIGMA": 150,
    "LANDING_MU": 120,
    "LANDING_SIGMA": 30,
}


# ==============================================================================
# PROFILE 3: HOLDING - No circling path
# ==============================================================================
PROFILE_HOLDING = {
    "name": "holding",
    "description": "Runway occupancy N(750, 150); no circling path: the threshold aircraft holds in the landing queue until the runway is released",
    "ARRIVAL_MU": 180,
    "ARRIVAL_SIGMA": 60,
    "APPROACH_MU": 600,
    "APPROACH_SIGMA": 150,
    "RUNWAY_APPROACH_TIME": 40,
    "CIRCLING_ENABLED": False,
    "CIRCLING_MU": 750,
    "CIRCLING_SIGMA": 150,
    "LANDING_MU": 750,
    "LANDING_SIGMA": 150,
}


class UnknownProfileError(KeyError):
    """Raised when a timing profile name is not registered."""


# ==============================================================================
# TIMING PROFILE
# ==============================================================================
@dataclass(frozen=True)
class TimingProfile:
    """Duration distributions (mean, standard deviation) of one model variant."""

    name: str = "standard"
    description: str = ""
    arrival_mu: float = 180
    arrival_sigma: float = 60
    approach_mu: float = 600
    approach_sigma: float = 150
    runway_approach_time: int = 40
    circling_enabled: bool = True
    circling_mu: float = 750
    circling_sigma: float = 150
    landing_mu: float = 750
    landing_sigma: float = 150

    def __post_init__(self):
        for prefix in ("arrival", "approach", "circling", "landing"):
            mu = getattr(self, f"{prefix}_mu")
            sigma = getattr(self, f"{prefix}_sigma")
            if sigma < 0:
                raise ValueError(f"{prefix}_sigma must be non-negative, got {sigma}")
            if mu < 0:
                raise ValueError(f"{prefix}_mu must be non-negative, got {mu}")
        if self.runway_approach_time < 0 or int(self.runway_approach_time) != self.runway_approach_time:
            raise ValueError("runway_approach_time must be a non-negative whole number of seconds")

    @classmethod
    def from_scenario(cls, scenario: Mapping) -> "TimingProfile":
        """Build a profile from an upper-case scenario dictionary such as PROFILE_STANDARD."""
        kwargs = {"name": scenario["name"], "description": scenario.get("description", "")}
        for f in fields(cls):
            key = f.name.upper()
            if key in scenario:
                kwargs[f.name] = scenario[key]
        return cls(**kwargs)


PROFILES: dict[str, TimingProfile] = {
    scenario["name"]: TimingProfile.from_scenario(scenario)
    for scenario in (PROFILE_STANDARD, PROFILE_SHORT_LANDING, PROFILE_HOLDING)
}


def get_profile(name: str) -> TimingProfile:
    try:
        return PROFILES[name]
    except KeyError:
        raise UnknownProfileError(f"Unknown timing profile {name!r}; choose one of {sorted(PROFILES)}") from None


# ==============================================================================
# RUN CONFIGURATION
# ==============================================================================
@dataclass
class SimulationConfig:
    """Parameters of one simulation run.

    `duration` cuts the run off at that simulation time; None runs until every
    aircraft is done. `mean_scale` and `sd_scale` multiply the separation tables
    for the duration of the run only.
    """

    arrival_count: int = 30
    seed: Optional[int] = None
    duration: Optional[int] = None
    profile: TimingProfile = field(default_factory=TimingProfile)
    separation_mean: Optional[Mapping] = None
    separation_sd: Optional[Mapping] = None
    mean_scale: float = 1.0
    sd_scale: float = 1.0

    def __post_init__(self):
        if isinstance(self.arrival_count, bool) or not isinstance(self.arrival_count, int) or self.arrival_count <= 0:
            raise ValueError(f"arrival_count must be a positive integer, got {self.arrival_count!r}")
        if self.duration is not None and self.duration < 0:
            raise ValueError(f"duration must be non-negative, got {self.duration}")
        for scale in (self.mean_scale, self.sd_scale):
            if not math.isfinite(scale) or scale < 0:
                raise ValueError(f"Separation scaling factors must be finite and non-negative, got {scale}")
        if isinstance(self.profile, str):
            self.profile = get_profile(self.profile)


def print_profile_summary():
    """Print the registered timing profiles side by side."""
    profiles = list(PROFILES.values())
    print("\n" + "=" * 100)
    print("TIMING PROFILES (seconds, mean / standard deviation)")
    print("=" * 100)
    print(f"{'Parameter':<28}" + "".join(f"{p.name:<24}" for p in profiles))
    print("-" * 100)
    print(f"{'Arrival':<28}" + "".join(f"{f'{p.arrival_mu} / {p.arrival_sigma}':<24}" for p in profiles))
    print(f"{'Approach':<28}" + "".join(f"{f'{p.approach_mu} / {p.approach_sigma}':<24}" for p in profiles))
    print(f"{'Empty-queue approach':<28}" + "".join(f"{p.runway_approach_time:<24}" for p in profiles))
    print(f"{'Circling':<28}" + "".join(
        f"{(f'{p.circling_mu} / {p.circling_sigma}' if p.circling_enabled else 'hold'):<24}" for p in profiles))
    print(f"{'Landing':<28}" + "".join(f"{f'{p.landing_mu} / {p.landing_sigma}':<24}" for p in profiles))
    print("=" * 100)
    for p in profiles:
        print(f"  • {p.name}: {p.description}")
    print()
