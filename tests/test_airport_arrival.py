from itertools import groupby

import pytest

from runway_arrivals.aircraft import Aircraft, AircraftEvent, AircraftType
from runway_arrivals.airport_arrival import (AircraftQueue, Metrics, QueueFullError, SimulationEngine,
                                             TimeJumpError, run_simulation)
from runway_arrivals.event_log import EventKind
from runway_arrivals.scenarios_config import SimulationConfig
from runway_arrivals.separation import SeparationModel


def three_arrivals():
    return [Aircraft(0, "heavy", 0, "TAP 900"), Aircraft(1, "small", 10, "BA 1001"),
            Aircraft(2, "large", 20, "NZ 2002")]


def run_engine(config, arrivals=None, separation=None):
    engine = SimulationEngine(config, arrivals=arrivals, separation=separation)
    result = engine.event_loop()
    return engine, result


# ------------------------------------------------------
# SCENARIOS
# ------------------------------------------------------
class TestSingleAircraft:

    def test_event_sequence(self, fixed_profile):
        engine, result = run_engine(SimulationConfig(arrival_count=1, seed=5, profile=fixed_profile))
        log = engine.sink
        assert log.kinds() == [EventKind.START, EventKind.APPROACH, EventKind.ENQUEUE,
                               EventKind.START_LANDING, EventKind.FINISH]
        assert [record.time for record in log] == [0, 180, 780, 820, 1570]
        assert result.completed
        assert result.final_time == 1570
        assert result.counters == {"n_a": 1, "n_lq": 1, "n_c": 0, "n_lz": 1, "n_tp": 1, "n_d": 1, "n_h": 0}
        assert result.t_over4 == 0

    def test_snapshots_follow_the_aircraft(self, fixed_profile):
        engine, _ = run_engine(SimulationConfig(arrival_count=1, seed=5, profile=fixed_profile))
        records = list(engine.sink)
        assert records[0].queues["FEL"] != ""
        assert records[0].etas["FEL"] == 180
        assert records[1].queues["Approaching"] == records[0].queues["FEL"]
        assert records[2].etas["Landing Queue"] == 820
        assert records[3].etas["Landing Zone"] == 1570
        assert records[3].etas["Landing Queue"] is None
        assert records[4].queues["Done"] == records[0].queues["FEL"]
        assert records[4].flight_number == engine.done_queue.head.flight_number

    def test_duration_cuts_the_run_off(self, fixed_profile):
        engine, result = run_engine(SimulationConfig(arrival_count=1, seed=5, profile=fixed_profile, duration=500))
        assert not result.completed
        assert result.final_time == 500
        assert result.counters["n_a"] == 1
        assert result.counters["n_d"] == 0
        assert len(engine.approaching_queue) == 1


class TestCircling:

    @pytest.fixture
    def config(self, fixed_profile, zero_sd):
        return SimulationConfig(arrival_count=3, seed=1, profile=fixed_profile, separation_sd=zero_sd)

    def test_start_snapshot_lists_arrivals_with_head_on_the_right(self, config):
        engine, _ = run_engine(config, three_arrivals())
        first = next(iter(engine.sink))
        assert first.kind == EventKind.START
        assert first.queues["FEL"] == "LSH"
        assert first.etas["FEL"] == 0

    def test_follower_enqueue_is_chained_to_leader(self, config):
        arrivals = three_arrivals()
        run_engine(config, arrivals)
        assert (AircraftEvent.ENQUEUE, 610, 770) in arrivals[1].history
        assert (AircraftEvent.ENQUEUE, 620, 834) in arrivals[2].history

    def test_counters(self, config):
        engine, result = run_engine(config, three_arrivals())
        assert result.final_time == 3164
        assert result.counters["n_c"] == 3
        assert result.counters["n_lz"] == 3
        assert result.counters["n_tp"] == 6
        assert result.counters["n_lq"] == 6
        assert result.counters["n_d"] == 3
        assert result.counters["n_tp"] == result.counters["n_lz"] + result.counters["n_c"]
        assert engine.sink.kinds().count(EventKind.START_CIRCLING) == 3

    def test_mean_scale_applies_for_the_run_only(self, config, zero_sd):
        separation = SeparationModel(sd_table=zero_sd)
        arrivals = three_arrivals()
        config.separation_sd = None
        config.mean_scale = 0.5
        run_engine(config, arrivals, separation=separation)
        assert (AircraftEvent.ENQUEUE, 610, 705) in arrivals[1].history
        assert not separation.is_scaled()

    def test_generated_arrivals(self, config):
        _, result = run_engine(config)
        assert result.completed
        assert result.counters["n_c"] == 3
        assert result.counters["n_lq"] == 6


class TestHolding:

    @pytest.fixture
    def config(self, fixed_holding_profile, zero_sd):
        return SimulationConfig(arrival_count=3, seed=1, profile=fixed_holding_profile, separation_sd=zero_sd)

    def test_holds_instead_of_circling(self, config):
        engine, result = run_engine(config, three_arrivals())
        holds = [record.time for record in engine.sink if record.kind == EventKind.HOLD]
        assert holds == [770, 1390]
        assert result.counters == {"n_a": 3, "n_lq": 3, "n_c": 0, "n_lz": 3, "n_tp": 3, "n_d": 3, "n_h": 2}
        assert result.final_time == 2890

    def test_followers_are_deferred_to_release(self, config):
        arrivals = three_arrivals()
        run_engine(config, arrivals)
        assert (AircraftEvent.HOLD, 770, 1390) in arrivals[1].history
        assert (AircraftEvent.START_LANDING, 1390, 2140) in arrivals[1].history
        assert (AircraftEvent.HOLD, 1390, 2140) in arrivals[2].history


class TestQueueLengthStatistic:

    def test_time_over_threshold(self, fixed_profile, zero_sd):
        config = SimulationConfig(arrival_count=8, seed=0, profile=fixed_profile, separation_sd=zero_sd)
        arrivals = [Aircraft(i, "small", 0) for i in range(8)]
        engine, result = run_engine(config, arrivals)
        # The fifth aircraft to join at T=600 pushes the queue over four; the third diversion at 832 ends it
        assert result.t_over4 == 832 - 600
        over = [record for record in engine.sink if record.n_lq_gt_4]
        assert over[0].time == 600
        assert over[-1].time < 832

    def test_metrics_accumulate_closed_intervals(self):
        metrics = Metrics()
        metrics.update_queue_length_statistic(10, 5)
        metrics.update_queue_length_statistic(15, 6)
        assert metrics.t_over4 == 0
        assert metrics.t_over4_at(20) == 10
        metrics.update_queue_length_statistic(30, 4)
        assert metrics.t_over4 == 20
        metrics.update_queue_length_statistic(40, 5)
        metrics.update_queue_length_statistic(45, 2)
        assert metrics.t_over4 == 25
        assert metrics.t_over4_at(100) == 25


# ------------------------------------------------------
# PROPERTIES OVER RANDOM RUNS
# ------------------------------------------------------
@pytest.mark.parametrize("seed", [1, 7, 42, 2024])
@pytest.mark.parametrize("profile", ["standard", "short_landing", "holding"])
class TestRandomRuns:

    @pytest.fixture
    def engine(self, seed, profile):
        engine = SimulationEngine(SimulationConfig(arrival_count=30, seed=seed, profile=profile))
        engine.event_loop()
        return engine

    def test_runs_to_completion(self, engine):
        assert engine.all_aircraft_processed()
        assert engine.metrics.n_d == 30
        assert engine.metrics.n_a == 30
        for queue in engine.queues()[:-1]:
            assert queue.is_empty()

    def test_landing_zone_holds_at_most_one(self, engine):
        assert all(len(record.queues["Landing Zone"]) <= 1 for record in engine.sink)

    def test_clock_never_goes_back(self, engine):
        times = engine.jump_history
        assert all(earlier <= later for earlier, later in zip(times, times[1:]))
        record_times = [record.time for record in engine.sink]
        assert record_times == sorted(record_times)

    def test_threshold_arrivals_split_into_landings_and_diversions(self, engine):
        m = engine.metrics
        assert m.n_tp == m.n_lz + m.n_c
        assert m.n_lz == 30
        assert m.n_lq == m.n_a + m.n_c

    def test_aircraft_history_is_ordered(self, engine):
        for aircraft in engine.done_queue:
            fired = [now for _, now, _ in aircraft.history]
            assert fired == sorted(fired)
            assert all(at is None or at >= now for _, now, at in aircraft.history)

    def test_landing_queue_is_first_in_first_out(self, engine):
        enqueues = sorted((now, at) for aircraft in engine.done_queue
                          for event, now, at in aircraft.history if event == AircraftEvent.ENQUEUE)
        latest = None
        for _, group in groupby(enqueues, key=lambda pair: pair[0]):
            scheduled = [at for _, at in group]
            if latest is not None:
                assert min(scheduled) >= latest
            latest = max(scheduled) if latest is None else max(latest, max(scheduled))


def test_same_seed_gives_same_log():
    first, second = (run_simulation(SimulationConfig(arrival_count=20, seed=99)) for _ in range(2))
    assert first.sink.to_dataframe().equals(second.sink.to_dataframe())
    assert first.kpis() == second.kpis()


# ------------------------------------------------------
# ERRORS
# ------------------------------------------------------
class TestErrors:

    def test_time_jump_backwards(self):
        engine = SimulationEngine(SimulationConfig(arrival_count=2, seed=3))
        engine.current_time = 500
        engine.future_arrivals.head.next_transition_at = 100
        with pytest.raises(TimeJumpError, match="T=500"):
            engine.time_jump()

    def test_engine_runs_once(self):
        engine = SimulationEngine(SimulationConfig(arrival_count=2, seed=3))
        engine.event_loop()
        with pytest.raises(RuntimeError):
            engine.event_loop()

    def test_arrival_count_mismatch(self):
        with pytest.raises(ValueError):
            SimulationEngine(SimulationConfig(arrival_count=2), arrivals=three_arrivals())

    def test_separation_model_and_overrides_are_exclusive(self, zero_sd):
        with pytest.raises(ValueError):
            SimulationEngine(SimulationConfig(arrival_count=1, separation_sd=zero_sd), separation=SeparationModel())

    def test_landing_zone_capacity(self):
        zone = AircraftQueue("Landing Zone", capacity=1)
        zone.append(Aircraft(0, "small", 0))
        with pytest.raises(QueueFullError):
            zone.append(Aircraft(1, "small", 0))

    @pytest.mark.parametrize("kwargs", [{"arrival_count": 0}, {"arrival_count": True}, {"duration": -1},
                                        {"mean_scale": -0.5}, {"mean_scale": float("nan")},
                                        {"sd_scale": float("inf")}])
    def test_invalid_config(self, kwargs):
        with pytest.raises(ValueError):
            SimulationConfig(**kwargs)


class TestAircraftQueue:

    def test_sort_is_stable(self):
        queue = AircraftQueue("Approaching")
        a, b, c = Aircraft(0, "small", 50), Aircraft(1, "large", 10), Aircraft(2, "heavy", 50)
        for aircraft in (a, b, c):
            queue.append(aircraft)
        queue.sort()
        assert list(queue) == [b, a, c]
        assert queue.is_sorted()
        assert queue.to_string() == "HSL"
        assert queue.head is b and queue.tail is c


def test_print_statistics(capsys, fixed_profile):
    engine = SimulationEngine(SimulationConfig(arrival_count=1, seed=5, profile=fixed_profile))
    engine.event_loop()
    kpis = engine.print_statistics(verbose=False)
    assert kpis["final_time"] == 1570
    assert kpis["throughput_per_hour"] == pytest.approx(3600 / 1570)
    assert capsys.readouterr().out == ""
    assert engine.print_statistics() is None
    assert "Runway Exits (Nd): 1" in capsys.readouterr().out


class TestSharedSeparationModel:

    def test_failed_scaling_leaves_model_unscaled(self):
        model = SeparationModel()
        config = SimulationConfig(arrival_count=2, seed=1, mean_scale=0.5)
        config.sd_scale = float("inf")
        engine = SimulationEngine(config, separation=model)
        with pytest.raises(ValueError):
            engine.event_loop()
        assert not model.is_scaled()
        assert model.mean_for(AircraftType.HEAVY, AircraftType.HEAVY) == 64

    def test_model_is_reset_after_a_run(self):
        model = SeparationModel()
        run_simulation(SimulationConfig(arrival_count=3, seed=2, mean_scale=0.3, sd_scale=0.6), separation=model)
        assert not model.is_scaled()


def test_next_up_reports_seconds_until_each_head(fixed_profile):
    engine = SimulationEngine(SimulationConfig(arrival_count=1, seed=5, profile=fixed_profile))
    engine.current_time = 100
    assert engine.next_up() == [80, None, None, None, None]
    assert engine.time_jump() == 180


def test_print_statistics_after_cutoff(capsys, fixed_profile):
    engine = SimulationEngine(SimulationConfig(arrival_count=1, seed=5, profile=fixed_profile, duration=500))
    engine.event_loop()
    assert engine.current_time == 780
    engine.print_statistics()
    out = capsys.readouterr().out
    assert "Final Simulation Time: 500 s" in out
    assert "Final Simulation Time: 780 s" not in out
