"""
Type-dependent separation between consecutive aircraft in the landing queue.
"""
from typing import Mapping, Optional

import numpy as np

from runway_arrivals.aircraft import AircraftType
from runway_arrivals.rv_generation import DurationSampler

# Row/column order of the internal tables
TYPE_ORDER = [AircraftType.HEAVY, AircraftType.LARGE, AircraftType.SMALL]
TYPE_INDEX = {aircraft_type: index for index, aircraft_type in enumerate(TYPE_ORDER)}

# Mean separation in seconds given lead (outer key) and in-trail (inner key) type
DEFAULT_SEPARATION_MEAN = {
    "heavy": {"heavy": 64, "large": 108, "small": 130},
    "large": {"heavy": 64, "large": 86, "small": 130},
    "small": {"heavy": 64, "large": 64, "small": 64},
}

# Standard deviation of separation in seconds, same layout as the means
DEFAULT_SEPARATION_SD = {
    "heavy": {"heavy": 30, "large": 40, "small": 50},
    "large": {"heavy": 30, "large": 40, "small": 50},
    "small": {"heavy": 30, "large": 30, "small": 30},
}


class SeparationTableError(ValueError):
    """Raised when a separation table is missing entries or holds invalid values."""


def table_to_array(table: Mapping, name: str = "separation") -> np.ndarray:
    """Convert a nested {lead: {trail: value}} mapping into a 3x3 array.

    Keys may be AircraftType members or type names. Every (lead, trail) pair must be
    present exactly once and every value must be a finite number >= 0.
    """
    array = np.full((len(TYPE_ORDER), len(TYPE_ORDER)), np.nan)
    for lead_key, row in table.items():
        try:
            lead = AircraftType.parse(lead_key)
        except ValueError as exc:
            raise SeparationTableError(f"{name} table: {exc}") from exc
        if not isinstance(row, Mapping):
            raise SeparationTableError(f"{name} table: row for {lead.value} must be a mapping")
        for trail_key, value in row.items():
            try:
                trail = AircraftType.parse(trail_key)
            except ValueError as exc:
                raise SeparationTableError(f"{name} table: {exc}") from exc
            if isinstance(value, bool) or not isinstance(value, (int, float, np.integer, np.floating)):
                raise SeparationTableError(
                    f"{name} table: value for ({lead.value}, {trail.value}) is not a number: {value!r}")
            if not np.isfinite(value) or value < 0:
                raise SeparationTableError(
                    f"{name} table: value for ({lead.value}, {trail.value}) must be finite and >= 0, got {value}")
            if not np.isnan(array[TYPE_INDEX[lead], TYPE_INDEX[trail]]):
                raise SeparationTableError(f"{name} table: duplicate entry for ({lead.value}, {trail.value})")
            array[TYPE_INDEX[lead], TYPE_INDEX[trail]] = float(value)

    missing = [(TYPE_ORDER[i].value, TYPE_ORDER[j].value) for i, j in zip(*np.where(np.isnan(array)))]
    if missing:
        raise SeparationTableError(f"{name} table is missing entries for {missing}")
    return array


def array_to_table(array: np.ndarray) -> dict[str, dict[str, float]]:
    return {
        lead.value: {trail.value: float(array[TYPE_INDEX[lead], TYPE_INDEX[trail]]) for trail in TYPE_ORDER}
        for lead in TYPE_ORDER
    }


# ------------------------------------------------------
# SEPARATION MODEL
# ------------------------------------------------------
class SeparationModel:
    """Mean and standard deviation tables of queue-entry separation.

    The tables given at construction (or the defaults) are the base tables. Scaling
    multiplies the current tables in place; reset() restores the base tables.
    """
    def __init__(self, mean_table: Optional[Mapping] = None, sd_table: Optional[Mapping] = None):
        self.base_mean = table_to_array(mean_table if mean_table is not None else DEFAULT_SEPARATION_MEAN, "mean")
        self.base_sd = table_to_array(sd_table if sd_table is not None else DEFAULT_SEPARATION_SD, "sd")
        self.mean = self.base_mean.copy()
        self.sd = self.base_sd.copy()

    @staticmethod
    def _check_factor(factor: float):
        if not np.isfinite(factor) or factor < 0:
            raise ValueError(f"Scaling factor must be finite and non-negative, got {factor}")

    def scale_mean_by(self, factor: float):
        self._check_factor(factor)
        self.mean = self.mean * factor

    def scale_sd_by(self, factor: float):
        self._check_factor(factor)
        self.sd = self.sd * factor

    def reset(self):
        self.mean = self.base_mean.copy()
        self.sd = self.base_sd.copy()

    def is_scaled(self) -> bool:
        return not (np.array_equal(self.mean, self.base_mean) and np.array_equal(self.sd, self.base_sd))

    def mean_for(self, lead: AircraftType, trail: AircraftType) -> float:
        return float(self.mean[TYPE_INDEX[lead], TYPE_INDEX[trail]])

    def sd_for(self, lead: AircraftType, trail: AircraftType) -> float:
        return float(self.sd[TYPE_INDEX[lead], TYPE_INDEX[trail]])

    def sample_separation(self, lead: AircraftType, trail: AircraftType, sampler: DurationSampler) -> int:
        """Draw the separation (seconds) an aircraft of type `trail` keeps behind one of type `lead`."""
        return sampler.sample(self.mean_for(lead, trail), self.sd_for(lead, trail))

    def mean_table(self) -> dict[str, dict[str, float]]:
        return array_to_table(self.mean)

    def sd_table(self) -> dict[str, dict[str, float]]:
        return array_to_table(self.sd)

    def __repr__(self) -> str:
        return f"SeparationModel(mean={self.mean_table()}, sd={self.sd_table()})"
