"""
Confidence intervals for KPIs collected over independent simulation replications.
"""
from typing import Iterable, Optional

import numpy as np
from scipy import stats


# ----------------------------------------------------------------------------
# CONFIDENCE INTERVAL
# ----------------------------------------------------------------------------
class ConfidenceInterval:
    """Student-t interval around the mean of the replications added so far.

    The interval is considered final once its width is at most `max_interval_width`
    times the absolute mean.
    """
    def __init__(self, min_samples_count: int = 2, max_interval_width: float = 0.1, confidence_level: float = 0.95):
        if not 0 < confidence_level < 1:
            raise ValueError("Confidence level must be between 0 and 1.")
        if min_samples_count < 2:
            raise ValueError("At least two samples are needed for an interval.")
        self.min_samples_count = min_samples_count
        self.max_interval_width = max_interval_width
        self.confidence_level = confidence_level
        self.data: list[float] = []

    @classmethod
    def from_samples(cls, samples: Iterable[float], **kwargs) -> "ConfidenceInterval":
        interval = cls(**kwargs)
        for value in samples:
            interval.add_data_point(value)
        return interval

    def add_data_point(self, value: float):
        self.data.append(float(value))

    def get_sample_size(self) -> int:
        return len(self.data)

    def has_enough_data(self) -> bool:
        return len(self.data) >= self.min_samples_count

    @property
    def average(self) -> float:
        return float(np.mean(self.data)) if self.data else 0.0

    @property
    def std_dev(self) -> float:
        return float(np.std(self.data, ddof=1)) if len(self.data) > 1 else 0.0

    def half_width(self) -> Optional[float]:
        n = len(self.data)
        if n < 2:
            return None
        t_score = stats.t.ppf(1 - (1 - self.confidence_level) / 2, df=n - 1)
        return float(t_score * self.std_dev / np.sqrt(n))

    def compute_interval(self) -> Optional[tuple[bool, tuple[float, float]]]:
        """Return (is_final, (lower, upper)), or None with fewer than two samples."""
        margin_of_error = self.half_width()
        if margin_of_error is None:
            return None

        lower_bound = self.average - margin_of_error
        upper_bound = self.average + margin_of_error
        final_interval = (upper_bound - lower_bound) <= self.max_interval_width * abs(self.average)
        return final_interval, (lower_bound, upper_bound)
