import dataclasses

import pytest

from runway_arrivals.aircraft import AircraftType
from runway_arrivals.scenarios_config import get_profile

ZERO_SD = {lead.value: {trail.value: 0 for trail in AircraftType} for lead in AircraftType}


def deterministic(profile_name: str = "standard"):
    """The named profile with every standard deviation set to zero."""
    return dataclasses.replace(get_profile(profile_name), arrival_sigma=0, approach_sigma=0,
                               circling_sigma=0, landing_sigma=0)


@pytest.fixture
def fixed_profile():
    return deterministic("standard")


@pytest.fixture
def zero_sd():
    return ZERO_SD


@pytest.fixture
def fixed_holding_profile():
    return deterministic("holding")
