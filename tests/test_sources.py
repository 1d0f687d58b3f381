"""Tests for photon rendering and the synthetic image sources."""

import logging
import math

import numpy as np
import pytest

from smlm_sim.analysis import SpotDetector
from smlm_sim.core.errors import ConfigError
from smlm_sim.io import read_stack
from smlm_sim.sources import FluorophoreSource, GoldBead, ImageSource, StaticSpotSource
from smlm_sim.sources.render import blur, place_emitters


def test_place_emitters_rounds_and_drops_outside():
    image = place_emitters((8, 10), np.array([[2.4, 3.6], [2.0, 4.0], [50.0, 1.0]]), 5.0)
    assert image[4, 2] == 10.0
    assert image.sum() == 10.0


def test_blur_conserves_photons_away_from_border(camera):
    photons = place_emitters(camera.shape, np.array([[32.0, 32.0]]), 1000.0)
    blurred = blur(photons, camera.psf_digital)
    assert blurred.shape == camera.shape
    assert blurred.sum() == pytest.approx(1000.0)
    assert blurred.argmax() == np.ravel_multi_index((32, 32), camera.shape)
    np.testing.assert_allclose(blurred, blurred.T, atol=1e-9)


def test_static_source_is_exact_without_camera():
    source = StaticSpotSource((16, 24), [(3, 4), (30, 4)], brightness=50.0, background=2.0)
    frame = source.get_next_image()

    assert isinstance(source, ImageSource)
    assert frame.shape == (16, 24)
    assert frame[4, 3] == 52.0
    assert frame[0, 0] == 2.0
    assert source.get_true_signal(1) == 1.0
    assert math.isnan(source.get_true_signal(2))
    assert not frame.flags.writeable


def test_static_source_ignores_control_signal():
    source = StaticSpotSource((16, 16), [(8, 8)])
    a = source.get_next_image()
    source.set_control_signal(100.0)
    b = source.get_next_image()
    np.testing.assert_array_equal(a, b)
    assert source.get_image_count() == 2
    assert len(source.get_stack()) == 2


def test_static_source_through_camera_is_detectable(camera):
    source = StaticSpotSource(
        camera.shape, [(20, 32), (40, 32)], brightness=5000.0, camera=camera, seed=4
    )
    frame = source.get_next_image()
    assert frame.dtype == np.float32
    assert source.get_object_space_pixel_size() == pytest.approx(camera.object_space_pixel_size)

    stats = SpotDetector(noise_tolerance=300, box_size=5).analyze(frame)
    assert stats.count == 2
    assert stats.min_distance == 20.0


def test_fluorophores_stay_dark_without_power(camera):
    source = FluorophoreSource(camera, n_emitters=200, activation_rate=0.5, seed=1)
    for _ in range(5):
        frame = source.get_next_image()
        assert frame.shape == camera.shape
        assert frame.dtype == np.float32
        assert np.all(frame >= 0)
    assert [source.get_true_signal(i) for i in range(1, 6)] == [0.0] * 5


def test_fluorophores_full_power_activates_all(camera):
    source = FluorophoreSource(camera, n_emitters=50, activation_rate=1.0, p_off=0.0, p_bleach=0.0)
    source.set_control_signal(1.0)
    source.get_next_image()
    assert source.get_true_signal(1) == 50.0


def test_fluorophores_bleach_permanently(camera):
    source = FluorophoreSource(camera, n_emitters=30, activation_rate=1.0, p_off=0.0, p_bleach=1.0)
    source.set_control_signal(1.0)
    source.get_next_image()
    source.get_next_image()
    source.get_next_image()

    assert source.get_true_signal(1) == 30.0
    assert source.get_true_signal(2) == 0.0
    assert source.get_true_signal(3) == 0.0
    assert source.bleached_count() == 30


def test_fluorophores_more_power_more_emitters(camera):
    def mean_active(power):
        source = FluorophoreSource(camera, n_emitters=400, activation_rate=0.05, seed=9)
        source.set_control_signal(power)
        for _ in range(20):
            source.get_next_image()
        return np.mean([source.get_true_signal(i) for i in range(1, 21)])

    assert mean_active(0.5) < mean_active(5.0)


def test_increment_time_step_advances_without_frame(camera):
    source = FluorophoreSource(camera, n_emitters=20, activation_rate=1.0, p_off=0.0, p_bleach=0.0)
    source.set_control_signal(1.0)
    source.increment_time_step()
    assert source.get_image_count() == 0
    assert int(np.count_nonzero(source.states)) == 20


def test_fluorophores_reproducible(camera):
    frames = []
    for _ in range(2):
        source = FluorophoreSource(camera, n_emitters=100, activation_rate=0.1, seed=5)
        source.set_control_signal(2.0)
        frames.append([source.get_next_image() for _ in range(3)])
    for a, b in zip(*frames):
        np.testing.assert_array_equal(a, b)


def test_gold_bead_is_drawn_on_every_frame(camera):
    bead = GoldBead(10.0, 50.0, brightness=5000.0)
    source = FluorophoreSource(camera, n_emitters=0, background=1.0, obstructors=[bead])
    for _ in range(2):
        frame = source.get_next_image()
        assert frame[50, 10] > 10 * frame[5, 60]


@pytest.mark.parametrize(
    "kwargs",
    [
        {"n_emitters": -1},
        {"p_off": 1.5},
        {"p_off": 0.7, "p_bleach": 0.4},
        {"activation_rate": -0.1},
        {"background": -1.0},
    ],
)
def test_fluorophores_invalid(camera, kwargs):
    with pytest.raises(ConfigError):
        FluorophoreSource(camera, **kwargs)


def test_gold_bead_invalid():
    with pytest.raises(ConfigError):
        GoldBead(0, 0, brightness=1.0, sigma=0.0)


def test_save_stack_roundtrip(tmp_path):
    source = StaticSpotSource((12, 12), [(6, 6)])
    source.get_next_image()
    source.get_next_image()
    path = source.save_stack(tmp_path / "s.tif")

    frames, meta = read_stack(path)
    assert frames.shape == (2, 12, 12)
    assert meta["parameters"]["emitters"] == 1.0


def test_saved_stack_records_camera(tmp_path, camera):
    source = FluorophoreSource(camera, n_emitters=10)
    source.get_next_image()
    _, meta = read_stack(source.save_stack(tmp_path / "f.tif"))
    assert meta["camera"]["NA"] == 1.3
    assert meta["frame_duration_ms"] == pytest.approx(10.0)
    assert meta["pixel_size_um"] == pytest.approx(camera.object_space_pixel_size)


def test_render_debug_record_only_when_enabled(camera, caplog):
    name = "smlm_sim.sources.fluorophores"
    source = FluorophoreSource(camera, n_emitters=20, activation_rate=1.0, p_off=0.0, p_bleach=0.0)
    source.set_control_signal(1.0)

    caplog.set_level(logging.INFO, logger=name)
    source.get_next_image()
    assert not [r for r in caplog.records if r.name == name]

    caplog.set_level(logging.DEBUG, logger=name)
    source.get_next_image()
    records = [r for r in caplog.records if r.name == name]
    assert len(records) == 1
    assert records[0].extra_data == {"active": 20, "bleached": 0, "power": 1.0}
