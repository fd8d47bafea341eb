"""Tests for geometry module."""
from __future__ import annotations

import math

import numpy as np
import pytest

from true_iso.config import (
    DegenerateBasisError,
    IsoRatio,
    SingularMatrixError,
    TrueIsoError,
)
from true_iso.geometry import (
    AffineMatrix,
    basis_matrix,
    compute_correction_matrix,
    compute_output_bounds,
    decide_correction,
    target_angles,
    unit_vector,
    vector_angle,
)

ISO_2_1 = math.degrees(math.atan(0.5))


class TestAffineMatrix:
    """Tests for AffineMatrix."""

    def test_determinant(self) -> None:
        """Should compute ad - bc."""
        assert AffineMatrix(1.0, 2.0, 3.0, 4.0).determinant == -2.0

    def test_inverse(self) -> None:
        """Closed-form inverse should match numpy."""
        matrix = AffineMatrix(1.2, -0.3, 0.4, 0.9)
        expected = np.linalg.inv(matrix.as_array())
        assert np.allclose(matrix.inverse().as_array(), expected)

    def test_inverse_singular(self) -> None:
        """Singular matrix inverse should raise a pipeline error."""
        with pytest.raises(SingularMatrixError) as excinfo:
            AffineMatrix(1.0, 2.0, 2.0, 4.0).inverse()
        assert isinstance(excinfo.value, TrueIsoError)
        assert excinfo.value.determinant == 0.0

    def test_matmul(self) -> None:
        """Matrix product should match numpy."""
        a = AffineMatrix(1.0, 2.0, 3.0, 4.0)
        b = AffineMatrix(0.5, -1.0, 2.0, 0.25)
        assert np.allclose((a @ b).as_array(), a.as_array() @ b.as_array())

    def test_identity_apply(self) -> None:
        """Identity should leave points unchanged."""
        assert AffineMatrix.identity().apply(3.5, -2.0) == (3.5, -2.0)


class TestBasis:
    """Tests for basis construction helpers."""

    def test_unit_vector(self) -> None:
        """Unit vectors should have length 1."""
        x, y = unit_vector(-37.0)
        assert math.hypot(x, y) == pytest.approx(1.0)
        assert vector_angle(x, y) == pytest.approx(-37.0)

    def test_basis_columns(self) -> None:
        """Basis columns should be the axis unit vectors."""
        basis = basis_matrix(-20.0, 30.0)
        assert vector_angle(basis.a, basis.c) == pytest.approx(-20.0)
        assert vector_angle(basis.b, basis.d) == pytest.approx(30.0)

    def test_target_angles(self) -> None:
        """Targets are symmetric around horizontal."""
        left, right = target_angles(IsoRatio(2, 1))
        assert left == pytest.approx(-ISO_2_1)
        assert right == pytest.approx(ISO_2_1)


class TestDecideCorrection:
    """Tests for decide_correction function."""

    def test_exact_target_skips(self) -> None:
        """Angles exactly on target need no correction."""
        decision = decide_correction(-ISO_2_1, ISO_2_1, IsoRatio(2, 1))
        assert decision.apply is False

    def test_within_tolerance_skips(self) -> None:
        """Both deviations within 2° should skip correction."""
        decision = decide_correction(-25.0, 28.5, IsoRatio(2, 1))
        assert decision.apply is False
        assert decision.left_deviation == pytest.approx(ISO_2_1 - 25.0)

    def test_tolerance_boundary(self) -> None:
        """Just inside the tolerance skips, just outside applies."""
        inside = decide_correction(-ISO_2_1, ISO_2_1 + 1.999, IsoRatio(2, 1))
        outside = decide_correction(-ISO_2_1, ISO_2_1 + 2.001, IsoRatio(2, 1))
        assert inside.apply is False
        assert outside.apply is True

    def test_one_axis_off_applies(self) -> None:
        """One axis beyond tolerance is enough to correct."""
        decision = decide_correction(-ISO_2_1, 30.0, IsoRatio(2, 1))
        assert decision.apply is True

    def test_records_angles(self) -> None:
        """Decision should carry detected and target angles."""
        decision = decide_correction(-20.0, 30.0, IsoRatio(2, 1))
        assert decision.apply is True
        assert decision.detected_left == -20.0
        assert decision.detected_right == 30.0
        assert decision.target_left == pytest.approx(-ISO_2_1)
        assert decision.target_right == pytest.approx(ISO_2_1)
        assert "apply correction" in decision.describe()

    def test_custom_tolerance(self) -> None:
        """Tolerance should be configurable."""
        decision = decide_correction(-20.0, 30.0, IsoRatio(2, 1), tolerance=7.0)
        assert decision.apply is False

    def test_other_ratio(self) -> None:
        """Targets should follow the requested ratio."""
        decision = decide_correction(-45.0, 45.0, IsoRatio(1, 1))
        assert decision.apply is False


class TestComputeCorrectionMatrix:
    """Tests for compute_correction_matrix function."""

    @pytest.mark.parametrize(
        "left, right",
        [(-20.0, 30.0), (-30.0, 22.0), (-26.0, 27.0), (-45.0, 18.0)],
    )
    def test_maps_detected_to_target(self, left: float, right: float) -> None:
        """Detected axis directions should land on the target angles."""
        matrix = compute_correction_matrix(left, right, IsoRatio(2, 1))
        mapped_left = vector_angle(*matrix.apply(*unit_vector(left)))
        mapped_right = vector_angle(*matrix.apply(*unit_vector(right)))
        assert abs(mapped_left - (-ISO_2_1)) < 0.01
        assert abs(mapped_right - ISO_2_1) < 0.01

    def test_maps_to_unit_vectors(self) -> None:
        """Mapped axis vectors should be exactly the target unit vectors."""
        matrix = compute_correction_matrix(-20.0, 30.0, IsoRatio(2, 1))
        x, y = matrix.apply(*unit_vector(-20.0))
        tx, ty = unit_vector(-ISO_2_1)
        assert x == pytest.approx(tx)
        assert y == pytest.approx(ty)

    def test_identity_when_on_target(self) -> None:
        """Correct angles should give the identity matrix."""
        matrix = compute_correction_matrix(-ISO_2_1, ISO_2_1, IsoRatio(2, 1))
        assert np.allclose(matrix.as_array(), np.eye(2))

    def test_non_degenerate(self) -> None:
        """Result should be invertible."""
        matrix = compute_correction_matrix(-20.0, 30.0, IsoRatio(2, 1))
        assert abs(matrix.determinant) > 1e-3

    def test_parallel_axes_degenerate(self) -> None:
        """Coinciding axes should raise DegenerateBasisError."""
        with pytest.raises(DegenerateBasisError) as excinfo:
            compute_correction_matrix(30.0, 30.0, IsoRatio(2, 1))
        assert excinfo.value.determinant == pytest.approx(0.0)

    def test_opposite_directions_degenerate(self) -> None:
        """Axes 180° apart are the same line and also degenerate."""
        with pytest.raises(DegenerateBasisError):
            compute_correction_matrix(-30.0, 150.0, IsoRatio(2, 1))

    def test_degenerate_target_ratio(self) -> None:
        """A near-flat target ratio cannot be inverted at resample time."""
        with pytest.raises(DegenerateBasisError) as excinfo:
            compute_correction_matrix(-20.0, 30.0, IsoRatio(10**7, 1))
        assert excinfo.value.basis == "target"
        assert abs(excinfo.value.determinant) < 1e-6

    def test_result_is_invertible(self) -> None:
        """Any returned matrix can be inverted for resampling."""
        matrix = compute_correction_matrix(-44.0, 16.0, IsoRatio(1, 3))
        inverse = matrix.inverse()
        assert np.allclose((matrix @ inverse).as_array(), np.eye(2))


class TestComputeOutputBounds:
    """Tests for compute_output_bounds function."""

    def test_identity(self) -> None:
        """Identity keeps the rectangle."""
        assert compute_output_bounds(AffineMatrix.identity(), 10, 7) == (10, 7, 0.0, 0.0)

    def test_shear(self) -> None:
        """Horizontal shear widens the canvas."""
        shear = AffineMatrix(1.0, 0.5, 0.0, 1.0)
        width, height, min_x, min_y = compute_output_bounds(shear, 10, 10)
        assert (width, height) == (15, 10)
        assert (min_x, min_y) == (0.0, 0.0)

    def test_negative_offset(self) -> None:
        """Corners mapped left of the origin give a negative offset."""
        shear = AffineMatrix(1.0, -0.5, 0.0, 1.0)
        width, height, min_x, _ = compute_output_bounds(shear, 10, 10)
        assert width == 15
        assert min_x == pytest.approx(-5.0)
