"""
services/projection.py
──────────────────────
WGS84 longitude / latitude → KMA forecast grid cell (nx, ny).

The KMA short-term forecast API is addressed by grid cell rather than by
coordinate. Cells come from a Lambert Conformal Conic projection with
fixed parameters; any drift in this math silently queries the wrong cell.
"""

from __future__ import annotations

import math
import sys
from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class LambertConformalConic:
    """Projection parameters (degrees, kilometres, grid units)."""

    earth_radius_km: float = 6371.00877
    grid_km: float = 5.0
    standard_parallel_1: float = 30.0
    standard_parallel_2: float = 60.0
    origin_lon: float = 126.0
    origin_lat: float = 38.0
    x0: float = 210.0 / 5.0
    y0: float = 675.0 / 5.0


KMA_GRID = LambertConformalConic()

_PI = math.asin(1.0) * 2.0
_DEGRAD = _PI / 180.0


def _cone_constants(p: LambertConformalConic) -> Tuple[float, float, float, float]:
    """Return (re, sn, sf, ro) for the projection: grid-scaled radius, cone
    constant, scale factor and the radius at the origin latitude."""
    re = p.earth_radius_km / p.grid_km
    slat1 = p.standard_parallel_1 * _DEGRAD
    slat2 = p.standard_parallel_2 * _DEGRAD
    olat = p.origin_lat * _DEGRAD

    sn = math.tan(_PI * 0.25 + slat2 * 0.5) / math.tan(_PI * 0.25 + slat1 * 0.5)
    sn = math.log(math.cos(slat1) / math.cos(slat2)) / math.log(sn)
    sf = math.tan(_PI * 0.25 + slat1 * 0.5)
    sf = math.pow(sf, sn) * math.cos(slat1) / sn
    ro = math.tan(_PI * 0.25 + olat * 0.5)
    ro = re * sf / math.pow(ro, sn)
    return re, sn, sf, ro


_RE, _SN, _SF, _RO = _cone_constants(KMA_GRID)
_OLON = KMA_GRID.origin_lon * _DEGRAD


def project(longitude: float, latitude: float) -> Tuple[int, int]:
    """
    Convert a coordinate to its KMA grid cell.

    The ``+ 1.5`` bias rounds to the nearest cell and shifts to the
    1-based numbering the forecast API expects, so the projection origin
    (126°E, 38°N) is cell (43, 136).
    """
    ra = math.tan(_PI * 0.25 + latitude * _DEGRAD * 0.5)
    # tan() reaches 0 at the south pole
    ra = _RE * _SF / math.pow(max(ra, sys.float_info.min), _SN)

    theta = longitude * _DEGRAD - _OLON
    if theta > _PI:
        theta -= 2.0 * _PI
    if theta < -_PI:
        theta += 2.0 * _PI
    theta *= _SN

    x = ra * math.sin(theta) + KMA_GRID.x0
    y = _RO - ra * math.cos(theta) + KMA_GRID.y0

    return math.floor(x + 1.5), math.floor(y + 1.5)
