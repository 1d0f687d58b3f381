"""End-to-end tests of the closed acquisition loop."""

import math

import numpy as np
import pytest

from smlm_sim.analysis import SpotCounterAnalyzer
from smlm_sim.control import PIDController, ProportionalController
from smlm_sim.core.errors import ConfigError, ShapeError, SimulationError
from smlm_sim.io import read_stack
from smlm_sim.simulator import ClosedLoopSimulator
from smlm_sim.sources import BaseSource, StaticSpotSource

TWO_SPOTS = [(20, 32), (40, 32)]


class RecordingSource(StaticSpotSource):
    """Static source that remembers the control signal seen by every frame."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.seen = []

    def _render(self):
        self.seen.append(self.get_control_signal())
        return super()._render()


class ShrinkingSource(BaseSource):
    """Produces ``good_frames`` 64x64 frames, then 32x32 frames."""

    def __init__(self, good_frames):
        super().__init__()
        self.good_frames = good_frames

    def _render(self):
        side = 64 if self.get_image_count() < self.good_frames else 32
        return np.zeros((side, side)), 0.0


def make_simulator(source=None, controller=None, refresh_period=1):
    source = source or StaticSpotSource((64, 64), TWO_SPOTS)
    controller = controller or PIDController(0.1, 0.0, 0.0, setpoint=2.0, lower=0.0, upper=5.0)
    analyzer = SpotCounterAnalyzer(noise_tolerance=90, box_size=5)
    return ClosedLoopSimulator(source, analyzer, controller, refresh_period=refresh_period)


def test_static_two_spots_end_to_end():
    sim = make_simulator()
    history = sim.execute(10)

    assert len(history) == 10
    assert [e.step for e in history] == list(range(1, 11))
    for entry in history:
        assert entry.true_signal == 2.0
        assert entry.analyzer_output == 2.0
        assert entry.controller_output == 0.0
        assert entry.controller_setpoint == 2.0

    for frame in range(1, 11):
        values = sim.analyzer.get_output_values(frame)
        assert values["spot-count"] == 2.0
        assert values["min-dist"] == values["mean-dist"] == values["p10-dist"] == 20.0


def test_history_grows_across_calls():
    sim = make_simulator()
    sim.execute(3)
    sim.execute(4)
    assert sim.image_count == 7
    assert sim.source.get_image_count() == 7
    assert sim.history[-1].step == 7


def test_output_only_changes_on_refresh_steps():
    controller = PIDController(0.1, 0.1, 0.0, setpoint=10.0, lower=0.0, upper=100.0)
    sim = make_simulator(controller=controller, refresh_period=3)
    history = sim.execute(12)

    outputs = [e.controller_output for e in history]
    for i, entry in enumerate(history):
        if entry.step % 3 != 0:
            previous = outputs[i - 1] if i else controller.initial_output
            assert outputs[i] == previous

    refreshed = [e.controller_output for e in history if e.step % 3 == 0]
    assert len(refreshed) == 4
    assert all(a < b for a, b in zip(refreshed, refreshed[1:]))
    assert [s.step for s in controller.samples] == [3, 6, 9, 12]


def test_output_affects_next_frame_only():
    source = RecordingSource((64, 64), TWO_SPOTS)
    controller = ProportionalController(1.0, setpoint=10.0, lower=0.0, upper=100.0, initial_output=3.0)
    sim = make_simulator(source=source, controller=controller)
    sim.execute(3)

    # Frame 1 sees the initial output; every update (10 - 2) lands on the next frame.
    assert source.seen == [3.0, 8.0, 8.0]
    assert controller.get_history(1) == 3.0
    assert controller.get_history(2) == 8.0


def test_batch_output_is_mean_over_refresh_window():
    sim = make_simulator(refresh_period=4)
    sim.execute(8)
    assert [s.measurement for s in sim.controller.samples] == [2.0, 2.0]


def test_shape_change_aborts_and_keeps_history():
    sim = make_simulator(source=ShrinkingSource(good_frames=3))
    with pytest.raises(ShapeError) as excinfo:
        sim.execute(10)

    assert len(excinfo.value.history) == 3
    assert len(sim.history) == 3
    assert excinfo.value.expected == (64, 64)
    assert excinfo.value.actual == (32, 32)


def test_direct_step_attaches_history_and_blocks_further_steps():
    source = ShrinkingSource(good_frames=2)
    sim = make_simulator(source=source)
    sim.step()
    sim.step()
    with pytest.raises(ShapeError) as excinfo:
        sim.step()
    assert [e.step for e in excinfo.value.history] == [1, 2]
    assert sim.aborted

    with pytest.raises(SimulationError):
        sim.step()
    with pytest.raises(SimulationError):
        sim.execute(2)
    # Nothing beyond the rejected frame is generated.
    assert source.get_image_count() == 3
    assert len(sim.history) == 2


def test_stop_from_step_callback():
    sim = make_simulator()

    def stop_after_four(entry):
        if entry.step == 4:
            sim.stop()

    history = sim.execute(10, on_step=stop_after_four)
    assert len(history) == 4


@pytest.mark.parametrize("n", [0, -3, 2.5])
def test_rejects_non_positive_frame_budget(n):
    sim = make_simulator()
    with pytest.raises(ConfigError):
        sim.execute(n)
    assert sim.source.get_image_count() == 0


@pytest.mark.parametrize("k", [0, -1, 1.5])
def test_rejects_bad_refresh_period(k):
    with pytest.raises(ConfigError):
        make_simulator(refresh_period=k)


def test_initial_output_pushed_to_source():
    source = StaticSpotSource((64, 64), TWO_SPOTS)
    make_simulator(source=source, controller=ProportionalController(1.0, upper=10.0, initial_output=4.0))
    assert source.get_control_signal() == 4.0


def test_csv_report(tmp_path):
    sim = make_simulator()
    csv_path = tmp_path / "out" / "report.csv"
    sim.execute(5, csv_save_path=csv_path)

    lines = csv_path.read_text().splitlines()
    assert len(lines) == 2 + 5

    settings = lines[0]
    assert settings.startswith("#loop.refresh-period:1,")
    assert "StaticSpots.emitters:2" in settings
    assert "SpotCounter.noise-tolerance:90" in settings
    assert "SpotCounter.box-size:5" in settings
    assert "PID.kp:0.1" in settings

    assert lines[1] == (
        "frame-id,true-signal,control-signal,SpotCounter:spot-count,SpotCounter:min-dist,"
        "SpotCounter:mean-dist,SpotCounter:p10-dist,PID:setpoint"
    )
    assert lines[2] == "1,2.000000,0.000000,2.000000,20.000000,20.000000,20.000000,2.000000"
    assert lines[-1].startswith("5,")


def test_csv_writes_nan_for_missing_distances(tmp_path):
    source = StaticSpotSource((32, 32), [(10, 10)])
    sim = make_simulator(source=source)
    csv_path = tmp_path / "single.csv"
    sim.execute(2, csv_save_path=csv_path)

    row = csv_path.read_text().splitlines()[2].split(",")
    assert row[3] == "1.000000"
    assert row[4:7] == ["nan", "nan", "nan"]
    assert math.isnan(sim.analyzer.get_output_values(1)["min-dist"])


def test_tiff_stack_saved(tmp_path):
    sim = make_simulator()
    tiff_path = tmp_path / "stack.tif"
    sim.execute(4, tiff_save_path=tiff_path)

    frames, meta = read_stack(tiff_path)
    assert frames.shape == (4, 64, 64)
    assert frames.dtype == np.float32
    assert meta["source"] == "StaticSpots"
    assert frames[0, 32, 20] == 200.0


def test_history_records_are_plain_dicts():
    sim = make_simulator()
    sim.execute(2)
    records = sim.history_records()
    assert records[0] == {
        "step": 1,
        "true_signal": 2.0,
        "analyzer_output": 2.0,
        "controller_output": 0.0,
        "controller_setpoint": 2.0,
    }
