"""Tests for the instanced foliage field."""

import math

import numpy as np
import pytest

from bubblescape.core.foliage import FoliageConfig, FoliageField
from bubblescape.errors import ConfigurationError


def rot_x(a):
    c, s = math.cos(a), math.sin(a)
    return np.array([[1, 0, 0], [0, c, -s], [0, s, c]])


def rot_y(b):
    c, s = math.cos(b), math.sin(b)
    return np.array([[c, 0, s], [0, 1, 0], [-s, 0, c]])


@pytest.fixture
def field() -> FoliageField:
    foliage = FoliageField(seed=11)
    foliage.place(500, ((-20.0, 20.0), (-20.0, 0.0)), lambda x, z: 0.5 * x - z)
    return foliage


class TestPlace:
    def test_ranges(self, field):
        assert field.count == 500
        assert field.matrices.shape == (500, 4, 4)
        assert field.matrices.dtype == np.float32
        assert field.ground_x.min() >= -20.0 and field.ground_x.max() <= 20.0
        assert field.ground_z.min() >= -20.0 and field.ground_z.max() <= 0.0
        assert field.scale.min() >= 1.6 and field.scale.max() <= 2.4
        assert field.sway_speed.min() >= 0.5 and field.sway_speed.max() <= 1.0

    def test_ground_height_cached(self, field):
        np.testing.assert_allclose(field.base_height, 0.5 * field.ground_x - field.ground_z)
        np.testing.assert_allclose(field.matrices[:, 1, 3], field.base_height, rtol=1e-6, atol=1e-5)

    def test_ground_function_called_once_per_blade(self):
        calls = []

        def ground(x, z):
            calls.append((x, z))
            return 1.0

        foliage = FoliageField(seed=1)
        foliage.place(40, ground_height_fn=ground)
        foliage.update(1.0)
        foliage.update(2.0)
        assert len(calls) == 40

    def test_flat_ground_default(self):
        foliage = FoliageField(seed=1)
        foliage.place(10)
        assert not foliage.base_height.any()

    @pytest.mark.parametrize("count", [0, -1])
    def test_rejects_non_positive_count(self, count):
        with pytest.raises(ConfigurationError):
            FoliageField(seed=1).place(count)

    def test_rejects_empty_area(self):
        with pytest.raises(ConfigurationError):
            FoliageField(seed=1).place(10, ((5.0, -5.0), (0.0, 1.0)))

    def test_same_seed_same_layout(self):
        a = FoliageField(FoliageConfig(count=50), seed=3)
        b = FoliageField(FoliageConfig(count=50), seed=3)
        a.place()
        b.place()
        np.testing.assert_array_equal(a.matrices, b.matrices)


class TestUpdate:
    def test_idempotent_for_same_time(self, field):
        first = field.update(2.5).copy()
        field.update(7.0)
        second = field.update(2.5)
        np.testing.assert_array_equal(first, second)

    def test_writes_in_place(self, field):
        buffer = field.matrices
        assert field.update(1.0) is buffer

    def test_sway_bounded(self, field):
        for t in np.linspace(0.0, 30.0, 25):
            field.update(t)
            assert np.abs(field.sway).max() <= 0.15 + 1e-12

    def test_sway_formula(self, field):
        t = 3.7
        field.update(t)
        expected = np.sin(t * field.sway_speed + field.phase) * 0.15
        np.testing.assert_allclose(field.sway, expected)

    def test_matrix_matches_composition(self, field):
        field.update(4.2)
        for i in (0, 17, 499):
            inst = field.instance(i)
            sway = math.sin(4.2 * inst.sway_speed + inst.phase) * 0.15
            linear = rot_x(sway) @ rot_y(inst.rotation_y) * inst.scale
            m = field.matrices[i]
            np.testing.assert_allclose(m[:3, :3], linear, rtol=1e-5, atol=1e-6)
            np.testing.assert_allclose(m[:3, 3], [inst.ground_x, inst.base_height, inst.ground_z], rtol=1e-6, atol=1e-5)
            np.testing.assert_array_equal(m[3], [0.0, 0.0, 0.0, 1.0])

    def test_yaw_and_scale_fixed(self, field):
        yaw = field.rotation_y.copy()
        scale = field.scale.copy()
        for t in (0.1, 5.0, 99.0):
            field.update(t)
        np.testing.assert_array_equal(field.rotation_y, yaw)
        np.testing.assert_array_equal(field.scale, scale)
        # Row 0 carries no sway term
        np.testing.assert_allclose(field.matrices[:, 0, 0], np.cos(yaw) * scale, rtol=1e-6, atol=1e-6)


class TestInstance:
    def test_pose(self, field):
        field.update(1.0)
        position, rotation, scale = field.pose(3)
        inst = field.instance(3)
        assert position == (inst.ground_x, inst.base_height, inst.ground_z)
        assert rotation[0] == pytest.approx(field.sway[3])
        assert rotation[1] == inst.rotation_y
        assert scale == inst.scale

    @pytest.mark.parametrize("index", [-1, 500])
    def test_out_of_range(self, field, index):
        with pytest.raises(IndexError):
            field.instance(index)
