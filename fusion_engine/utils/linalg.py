# fusion_engine/utils/linalg.py
"""
Узкий набор матричных операций для фильтра фиксированной размерности.

Общее обращение матриц не требуется: в измерительной модели всего две
наблюдаемые величины, поэтому обращается только матрица 2x2.
"""
from typing import Tuple

import numpy as np

DEFAULT_SINGULAR_EPSILON = 1e-10


def identity(size: int) -> np.ndarray:
    return np.eye(size, dtype=float)


def mat_mul(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return np.matmul(a, b)


def transpose(a: np.ndarray) -> np.ndarray:
    return np.ascontiguousarray(a.T)


def mat_add(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return np.add(a, b)


def mat_sub(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return np.subtract(a, b)


def symmetrize(a: np.ndarray) -> np.ndarray:
    """Убирает накопленную асимметрию ковариации: (A + Aᵀ) / 2."""
    return (a + a.T) / 2.0


def inverse_2x2(m: np.ndarray,
                epsilon: float = DEFAULT_SINGULAR_EPSILON) -> Tuple[np.ndarray, bool]:
    """
    Точное обращение матрицы 2x2.

    Args:
        m: Матрица 2x2
        epsilon: Порог вырожденности для |det|

    Returns:
        (обратная матрица, признак вырожденности). При |det| < epsilon
        возвращается единичная матрица и признак True.
    """
    a, b = m[0, 0], m[0, 1]
    c, d = m[1, 0], m[1, 1]
    det = a * d - b * c
    if not np.isfinite(det) or abs(det) < epsilon:
        return identity(2), True

    inv = np.array([[d, -b], [-c, a]], dtype=float) / det
    return inv, False
