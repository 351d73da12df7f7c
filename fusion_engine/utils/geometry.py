# fusion_engine/utils/geometry.py
"""
Геодезические расчёты: расстояния, проекция смещения по азимуту и
отклонение точки от отрезка для упрощения трека.
"""
import math
from typing import Tuple

from geographiclib.geodesic import Geodesic
from geopy.distance import great_circle


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Расстояние по дуге большого круга в метрах."""
    return great_circle((lat1, lng1), (lat2, lng2)).meters


def project(lat: float, lng: float, distance_m: float, heading: float) -> Tuple[float, float]:
    """
    Прямая геодезическая задача: точка на расстоянии `distance_m`
    по азимуту `heading` от исходной.

    Returns:
        (широта, долгота) новой точки
    """
    result = Geodesic.WGS84.Direct(lat, lng, heading, distance_m)
    return result["lat2"], result["lon2"]


def normalize_heading(heading: float) -> float:
    """Приводит азимут к диапазону [0, 360)."""
    value = math.fmod(heading, 360.0)
    if value < 0:
        value += 360.0
    # fmod(-1e-17, 360) + 360 даёт ровно 360.0
    return 0.0 if value >= 360.0 else value


def point_segment_distance(px: float, py: float,
                           ax: float, ay: float,
                           bx: float, by: float) -> float:
    """
    Расстояние от точки P до отрезка AB в плоских координатах (градусах).

    Проекция на прямую ограничивается концами отрезка; вырожденный
    отрезок сводится к расстоянию до точки A.
    """
    dx = bx - ax
    dy = by - ay
    length_sq = dx * dx + dy * dy
    if length_sq == 0:
        return math.hypot(px - ax, py - ay)

    t = ((px - ax) * dx + (py - ay) * dy) / length_sq
    t = max(0.0, min(1.0, t))
    nearest_x = ax + t * dx
    nearest_y = ay + t * dy
    return math.hypot(px - nearest_x, py - nearest_y)
