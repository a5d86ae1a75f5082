"""Projective calibration transforms."""

from .rectifier import Rectifier
from .warper import Warper, apply_matrix, quad_to_square, square_to_quad

__all__ = ["Rectifier", "Warper", "apply_matrix", "quad_to_square", "square_to_quad"]
