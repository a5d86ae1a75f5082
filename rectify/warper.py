"""Projective quad-to-quad warping.

The transform is built in two steps: the source quad is mapped onto the unit
square (inverse of a square-to-quad mapping, computed through the adjoint),
then the unit square is mapped onto the destination quad. Composing the two
gives an arbitrary quadrilateral-to-quadrilateral perspective mapping, which
is needed because the sensing area and the display may both appear rotated
or trapezoidal.

Matrices are 4x4 and applied to row vectors ``(x, y, 0, 1) @ M``.
"""

from __future__ import annotations

from typing import Optional, Sequence, Tuple

import numpy as np

from contracts import CalibrationRectangle
from exceptions import DegenerateCalibrationError
from log_config.logger import get_logger
from rectify.rectifier import Rectifier

logger = get_logger(__name__)

_EPSILON = 1e-12

Quad = Tuple[Tuple[float, float], Tuple[float, float], Tuple[float, float], Tuple[float, float]]


def _quad_from_rect(rect: CalibrationRectangle) -> Quad:
    return tuple((float(p.x), float(p.y)) for p in rect.corners())  # type: ignore[return-value]


def square_to_quad(quad: Sequence[Tuple[float, float]]) -> np.ndarray:
    """Matrix mapping the unit square onto ``quad``.

    Raises:
        DegenerateCalibrationError: If the quad is collinear or collapsed.
    """
    (x0, y0), (x1, y1), (x2, y2), (x3, y3) = quad

    dx1, dy1 = x1 - x2, y1 - y2
    dx2, dy2 = x3 - x2, y3 - y2
    sx = x0 - x1 + x2 - x3
    sy = y0 - y1 + y2 - y3
    denominator = dx1 * dy2 - dx2 * dy1
    if abs(denominator) < _EPSILON:
        raise DegenerateCalibrationError(f"Quad {quad} is degenerate (zero denominator)")

    g = (sx * dy2 - dx2 * sy) / denominator
    h = (dx1 * sy - sx * dy1) / denominator
    a = x1 - x0 + g * x1
    b = x3 - x0 + h * x3
    c = x0
    d = y1 - y0 + g * y1
    e = y3 - y0 + h * y3
    f = y0

    # Three collinear corners leave the projective part singular.
    scale = max(1.0, max(abs(v) for point in quad for v in point))
    determinant = a * (e - f * h) - d * (b - c * h) + g * (b * f - c * e)
    if abs(determinant) < _EPSILON * scale * scale:
        raise DegenerateCalibrationError(f"Quad {quad} is degenerate (singular projection)")

    return np.array(
        [
            [a, d, 0.0, g],
            [b, e, 0.0, h],
            [0.0, 0.0, 1.0, 0.0],
            [c, f, 0.0, 1.0],
        ],
        dtype=np.float64,
    )


def quad_to_square(quad: Sequence[Tuple[float, float]]) -> np.ndarray:
    """Matrix mapping ``quad`` onto the unit square (adjoint inverse).

    Raises:
        DegenerateCalibrationError: If the adjoint determinant is zero.
    """
    mat = square_to_quad(quad)
    a, d, g = mat[0, 0], mat[0, 1], mat[0, 3]
    b, e, h = mat[1, 0], mat[1, 1], mat[1, 3]
    c, f = mat[3, 0], mat[3, 1]

    A = e - f * h
    B = c * h - b
    C = b * f - c * e
    D = f * g - d
    E = a - c * g
    F = c * d - a * f
    G = d * h - e * g
    H = b * g - a * h
    I = a * e - b * d

    determinant = a * A + b * D + c * G
    if abs(determinant) < _EPSILON:
        raise DegenerateCalibrationError(f"Quad {quad} is degenerate (singular adjoint)")
    idet = 1.0 / determinant

    return np.array(
        [
            [A * idet, D * idet, 0.0, G * idet],
            [B * idet, E * idet, 0.0, H * idet],
            [0.0, 0.0, 1.0, 0.0],
            [C * idet, F * idet, 0.0, I * idet],
        ],
        dtype=np.float64,
    )


def apply_matrix(matrix: np.ndarray, x: float, y: float) -> Tuple[float, float]:
    """Transform (x, y, 0, 1) by ``matrix`` and divide by w."""
    result = np.array([x, y, 0.0, 1.0], dtype=np.float64) @ matrix
    w = result[3]
    if abs(w) < _EPSILON:
        raise DegenerateCalibrationError(f"Point ({x}, {y}) maps to infinity")
    return float(result[0] / w), float(result[1] / w)


class Warper(Rectifier):
    """Maps points from a source quadrilateral onto a destination quadrilateral.

    Setting either quad marks the matrix dirty; it is recomputed on the next
    call to :meth:`warp` (or eagerly via :meth:`compute_transform`). When a
    recomputation fails the quads are rolled back, so the last good matrix
    remains in use.

    Not thread-safe on its own; the acquisition coordinator serializes access.
    """

    def __init__(self) -> None:
        self._source: Quad = _quad_from_rect(CalibrationRectangle.unit())
        self._destination: Quad = self._source
        self._good_source: Quad = self._source
        self._good_destination: Quad = self._destination
        self._matrix: np.ndarray = np.identity(4, dtype=np.float64)
        self._dirty = False
        self.set_identity()

    @property
    def is_dirty(self) -> bool:
        return self._dirty

    @property
    def source(self) -> Quad:
        return self._source

    @property
    def destination(self) -> Quad:
        return self._destination

    def set_identity(self) -> None:
        unit = CalibrationRectangle.unit()
        self.set_source(unit)
        self.set_destination(unit)
        self.compute_transform()

    def set_source(self, rect: CalibrationRectangle) -> None:
        self._source = _quad_from_rect(rect)
        self._dirty = True

    def set_destination(self, rect: CalibrationRectangle) -> None:
        self._destination = _quad_from_rect(rect)
        self._dirty = True

    def set_source_points(
        self,
        x0: float, y0: float,
        x1: float, y1: float,
        x2: float, y2: float,
        x3: float, y3: float,
    ) -> None:
        """Set the source quad from TL, TR, BL, BR coordinates."""
        self._source = ((x0, y0), (x1, y1), (x2, y2), (x3, y3))
        self._dirty = True

    def set_destination_points(
        self,
        x0: float, y0: float,
        x1: float, y1: float,
        x2: float, y2: float,
        x3: float, y3: float,
    ) -> None:
        """Set the destination quad from TL, TR, BL, BR coordinates."""
        self._destination = ((x0, y0), (x1, y1), (x2, y2), (x3, y3))
        self._dirty = True

    def compute_transform(self) -> np.ndarray:
        """Recompute the warp matrix from the current quads.

        Returns:
            A copy of the new 4x4 matrix

        Raises:
            DegenerateCalibrationError: If either quad is degenerate. The
                previous quads and matrix are restored.
        """
        try:
            src_mat = quad_to_square(self._source)
            dst_mat = square_to_quad(self._destination)
        except DegenerateCalibrationError:
            logger.warning(
                f"Rejected degenerate calibration src={self._source} dst={self._destination}; "
                "keeping previous transform"
            )
            self._source = self._good_source
            self._destination = self._good_destination
            self._dirty = False
            raise

        self._matrix = src_mat @ dst_mat
        self._good_source = self._source
        self._good_destination = self._destination
        self._dirty = False
        logger.debug(f"Warp matrix recomputed: {self._matrix.tolist()}")
        return self._matrix.copy()

    def get_warp_matrix(self) -> np.ndarray:
        if self._dirty:
            self.compute_transform()
        return self._matrix.copy()

    def warp(self, x: float, y: float) -> Tuple[float, float]:
        if self._dirty:
            self.compute_transform()
        return apply_matrix(self._matrix, x, y)

    def warp_many(self, points: Sequence[Tuple[float, float]]) -> Optional[np.ndarray]:
        """Warp an Nx2 sequence of points, returning an Nx2 array."""
        if len(points) == 0:
            return None
        if self._dirty:
            self.compute_transform()
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
        homogeneous = np.hstack([pts, np.zeros((len(pts), 1)), np.ones((len(pts), 1))])
        result = homogeneous @ self._matrix
        w = result[:, 3]
        if np.any(np.abs(w) < _EPSILON):
            raise DegenerateCalibrationError("One or more points map to infinity")
        return result[:, :2] / w[:, None]
