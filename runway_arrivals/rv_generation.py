import math
from typing import Optional

import numpy as np

from runway_arrivals.aircraft import AircraftType

AIRLINES = ["SATA", "TAP", "United", "American", "Delta", "NZ", "BA", "JetBlue"]

# Cumulative thresholds on a single uniform draw: u > 0.67 heavy, u > 0.21 large, else small
HEAVY_THRESHOLD = 0.67
LARGE_THRESHOLD = 0.21


class DurationSampler:
    """Seeded source of every random quantity used by one simulation run."""

    def __init__(self, seed: Optional[int] = None):
        self.seed = seed
        self.rng = np.random.default_rng(seed)

    def sample(self, mu: float, sigma: float) -> int:
        """Draw a non-negative integer duration from a normal distribution.

        The draw is rounded up to the next whole second and redrawn while negative.

        Args:
            mu (float): Mean of the normal distribution.
            sigma (float): Standard deviation of the normal distribution.

        Returns:
            int: Sampled duration in seconds, always >= 0.
        """
        if not (math.isfinite(mu) and math.isfinite(sigma)):
            raise ValueError(f"Normal parameters must be finite (mu={mu}, sigma={sigma}).")

        if sigma < 0:
            raise ValueError("Standard deviation must be non-negative.")

        if sigma == 0:
            if mu < 0:
                raise ValueError("A degenerate distribution with negative mean never yields a valid duration.")
            return int(math.ceil(mu))

        result = int(math.ceil(self.rng.normal(mu, sigma)))
        while result < 0:
            result = int(math.ceil(self.rng.normal(mu, sigma)))
        return result

    def uniform(self) -> float:
        return float(self.rng.random())

    def random_type(self) -> AircraftType:
        u = self.uniform()
        if u > HEAVY_THRESHOLD:
            return AircraftType.HEAVY
        elif u > LARGE_THRESHOLD:
            return AircraftType.LARGE
        return AircraftType.SMALL

    def random_flight_number(self) -> str:
        airline = AIRLINES[int(self.rng.integers(len(AIRLINES)))]
        number = int(self.rng.integers(800, 4001))
        return f"{airline} {number}"
