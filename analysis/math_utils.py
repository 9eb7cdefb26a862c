"""
Vector and statistics kernel for the shot-form analysis.

Every function here is pure and total over finite inputs: empty sequences,
zero-length vectors and zero-variance series return documented neutral values
(0) instead of raising or producing NaN.
"""

import math
from typing import Any, List, Sequence, Tuple

import numpy as np


def _to_vec(point: Any) -> np.ndarray:
    """Accept an (x, y, z) sequence or an object with .x/.y/.z attributes."""
    if hasattr(point, "x") and hasattr(point, "y"):
        return np.array([point.x, point.y, getattr(point, "z", 0.0)], dtype=np.float64)
    arr = np.asarray(point, dtype=np.float64)
    if arr.shape == (2,):
        arr = np.append(arr, 0.0)
    return arr


def vector_subtract(a: Any, b: Any) -> np.ndarray:
    return _to_vec(a) - _to_vec(b)



def angle_between_vectors(a: Any, b: Any) -> float:
    """Angle between two vectors in radians; 0 if either has zero length."""
    va, vb = _to_vec(a), _to_vec(b)
    na = float(np.linalg.norm(va))
    nb = float(np.linalg.norm(vb))
    if na == 0.0 or nb == 0.0:
        return 0.0
    cosang = np.clip(np.dot(va, vb) / (na * nb), -1.0, 1.0)
    return float(np.arccos(cosang))


def angle_between(prev: Any, center: Any, nxt: Any) -> float:
    """Angle in degrees (0..180) at `center` formed by prev-center-next.

    A degenerate joint (prev or next coinciding with center) yields 0.
    """
    v1 = vector_subtract(prev, center)
    v2 = vector_subtract(nxt, center)
    return float(np.degrees(angle_between_vectors(v1, v2)))


def mean(values: Sequence[float]) -> float:
    if len(values) == 0:
        return 0.0
    return float(np.mean(np.asarray(values, dtype=np.float64)))


def standard_deviation(values: Sequence[float]) -> float:
    """Population standard deviation (divides by N)."""
    if len(values) < 2:
        return 0.0
    return float(np.std(np.asarray(values, dtype=np.float64)))


def coefficient_of_variation(values: Sequence[float]) -> float:
    avg = mean(values)
    if avg == 0.0:
        return 0.0
    return standard_deviation(values) / abs(avg)


def min_max(values: Sequence[float]) -> Tuple[float, float]:
    if len(values) == 0:
        return 0.0, 0.0
    arr = np.asarray(values, dtype=np.float64)
    return float(np.min(arr)), float(np.max(arr))



def abs_deltas(values: Sequence[float]) -> List[float]:
    """Absolute frame-to-frame changes; one shorter than the input."""
    if len(values) < 2:
        return []
    return [float(d) for d in np.abs(np.diff(np.asarray(values, dtype=np.float64)))]


def argmax(values: Sequence[float]) -> int:
    """Index of the first maximum; 0 for an empty sequence."""
    if len(values) == 0:
        return 0
    return int(np.argmax(np.asarray(values, dtype=np.float64)))


def argmin(values: Sequence[float]) -> int:
    if len(values) == 0:
        return 0
    return int(np.argmin(np.asarray(values, dtype=np.float64)))



def find_peaks(values: Sequence[float], min_peak_height: float = 0.0,
               min_peak_distance: int = 1) -> List[int]:
    """Indices of strict local maxima >= min_peak_height, at least min_peak_distance apart."""
    peaks: List[int] = []
    for i in range(1, len(values) - 1):
        if values[i] > values[i - 1] and values[i] > values[i + 1] and values[i] >= min_peak_height:
            if not peaks or i - peaks[-1] >= min_peak_distance:
                peaks.append(i)
    return peaks


def find_valleys(values: Sequence[float], max_valley_height: float = math.inf,
                 min_valley_distance: int = 1) -> List[int]:
    """Indices of strict local minima <= max_valley_height, at least min_valley_distance apart."""
    valleys: List[int] = []
    for i in range(1, len(values) - 1):
        if values[i] < values[i - 1] and values[i] < values[i + 1] and values[i] <= max_valley_height:
            if not valleys or i - valleys[-1] >= min_valley_distance:
                valleys.append(i)
    return valleys


def correlation(x: Sequence[float], y: Sequence[float]) -> float:
    """Pearson correlation; 0 for mismatched/empty input or zero variance."""
    if len(x) != len(y) or len(x) == 0:
        return 0.0
    xa = np.asarray(x, dtype=np.float64)
    ya = np.asarray(y, dtype=np.float64)
    dx = xa - xa.mean()
    dy = ya - ya.mean()
    denom = math.sqrt(float(np.dot(dx, dx)) * float(np.dot(dy, dy)))
    if denom == 0.0:
        return 0.0
    return float(np.clip(np.dot(dx, dy) / denom, -1.0, 1.0))


def truncated_correlation(x: Sequence[float], y: Sequence[float]) -> float:
    """Pearson correlation over the common prefix of two series of unequal length."""
    n = min(len(x), len(y))
    return correlation(list(x[:n]), list(y[:n]))



def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))
