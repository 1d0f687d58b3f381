"""Tests for the spot-counter analyzer and offline stack evaluation."""

import math

import numpy as np
import pytest

from smlm_sim.analysis import Analyzer, SpotCounterAnalyzer
from smlm_sim.core.errors import ShapeError
from smlm_sim.io import write_stack
from smlm_sim.simulator import evaluate_stack, evaluate_tiff


def spot_frames(n_spots_per_frame, shape=(32, 32)):
    frames = []
    for n in n_spots_per_frame:
        frame = np.zeros(shape, dtype=np.float32)
        for i in range(n):
            frame[8, 4 + 6 * i] = 500.0
        frames.append(frame)
    return frames


def test_analyzer_contract():
    analyzer = SpotCounterAnalyzer()
    assert isinstance(analyzer, Analyzer)
    assert analyzer.get_name() == "SpotCounter"
    assert analyzer.get_output_keys() == ["spot-count", "min-dist", "mean-dist", "p10-dist"]
    assert analyzer.get_custom_parameters() == {"noise-tolerance": 100.0, "box-size": 5}


def test_intermittent_and_batch_outputs():
    analyzer = SpotCounterAnalyzer(noise_tolerance=50, box_size=3)
    assert math.isnan(analyzer.get_intermittent_output())
    assert math.isnan(analyzer.get_batch_output())

    for frame in spot_frames([1, 2, 3]):
        analyzer.process_image(frame, 32, 32)
    assert analyzer.get_intermittent_output() == 3.0
    assert analyzer.get_batch_output() == pytest.approx(2.0)
    # The window restarts after each batch read.
    assert math.isnan(analyzer.get_batch_output())
    assert analyzer.get_intermittent_output() == 3.0


def test_flat_buffer_is_reshaped():
    frame = spot_frames([2], shape=(16, 32))[0]
    analyzer = SpotCounterAnalyzer(noise_tolerance=50, box_size=3)
    analyzer.process_image(frame.ravel(), width=32, height=16)
    assert analyzer.get_output_values(1)["spot-count"] == 2.0


@pytest.mark.parametrize("pixels", [np.zeros(100), np.zeros((10, 12))])
def test_mismatched_dimensions_raise(pixels):
    with pytest.raises(ShapeError):
        SpotCounterAnalyzer().process_image(pixels, width=10, height=11)


def test_output_values_are_one_based():
    analyzer = SpotCounterAnalyzer(noise_tolerance=50, box_size=3)
    analyzer.process_image(spot_frames([2])[0], 32, 32)
    assert analyzer.get_output_values(1)["min-dist"] == 6.0
    with pytest.raises(IndexError):
        analyzer.get_output_values(0)
    with pytest.raises(IndexError):
        analyzer.get_output_values(2)


def test_evaluate_stack_rows():
    frames = spot_frames([0, 1, 3])
    rows = evaluate_stack(frames, [SpotCounterAnalyzer(noise_tolerance=50, box_size=3)])

    assert [frame_id for frame_id, _ in rows] == [1, 2, 3]
    assert rows[0][1][0] == 0.0
    assert rows[1][1][0] == 1.0
    assert rows[2][1][:2] == [3.0, 6.0]


def test_evaluate_tiff_writes_report(tmp_path):
    stack_path = write_stack(tmp_path / "rec.tif", spot_frames([2, 2, 4]), pixel_size_um=0.1)
    csv_path = evaluate_tiff(
        stack_path, [SpotCounterAnalyzer(noise_tolerance=50, box_size=3)], tmp_path / "eval.csv"
    )

    lines = csv_path.read_text().splitlines()
    assert lines[0] == "#SpotCounter.noise-tolerance:50,SpotCounter.box-size:3"
    assert lines[1] == (
        "frame-id,SpotCounter:spot-count,SpotCounter:min-dist,"
        "SpotCounter:mean-dist,SpotCounter:p10-dist"
    )
    assert lines[2] == "1,2.000000,6.000000,6.000000,6.000000"
    assert lines[4].startswith("3,4.000000,6.000000")
    assert len(lines) == 5


def test_evaluate_stack_skips_frames_processed_earlier():
    analyzer = SpotCounterAnalyzer(noise_tolerance=50, box_size=3)
    for frame in spot_frames([4, 4]):
        analyzer.process_image(frame, 32, 32)
    assert analyzer.get_processed_count() == 2

    rows = evaluate_stack(spot_frames([1, 2]), [analyzer])
    assert [(frame_id, values[0]) for frame_id, values in rows] == [(1, 1.0), (2, 2.0)]
    assert analyzer.get_processed_count() == 4
