from __future__ import annotations

import math
from typing import NamedTuple, Tuple


class Ellipsoid(NamedTuple):
    """
    A reference ellipsoid described by its semi-major and semi-minor axis lengths.

    Ellipsoids are immutable value objects. Two ellipsoids are equal when both axis
    lengths are exactly equal.

    Attributes:
        radius_equator: The semi-major axis (equatorial radius) in meters
        radius_polar: The semi-minor axis (polar radius) in meters

    Examples:
        >>> from spatialref.constructs.ellipsoid import WGS84_ELLIPSOID
        >>> x, y, z = WGS84_ELLIPSOID.lat_lon_height_to_xyz(0.0, 0.0, 0.0)
        >>> print(x, y, z)
        6378137.0 0.0 0.0
    """

    radius_equator: float
    radius_polar: float

    @property
    def flattening(self) -> float:
        return (self.radius_equator - self.radius_polar) / self.radius_equator

    @property
    def eccentricity_squared(self) -> float:
        a2 = self.radius_equator * self.radius_equator
        b2 = self.radius_polar * self.radius_polar
        return (a2 - b2) / a2

    def lat_lon_height_to_xyz(
        self, lat: float, lon: float, height: float = 0.0
    ) -> Tuple[float, float, float]:
        """
        Convert geodetic coordinates on this ellipsoid to geocentric (earth-centered) coordinates.

        Args:
            lat: The latitude in decimal degrees
            lon: The longitude in decimal degrees
            height: The height above the ellipsoid in meters

        Returns:
            A tuple of (x, y, z) geocentric coordinates in meters
        """
        lat_r = math.radians(lat)
        lon_r = math.radians(lon)
        sin_lat = math.sin(lat_r)
        cos_lat = math.cos(lat_r)

        # radius of curvature in the prime vertical
        n = self.radius_equator / math.sqrt(
            1.0 - self.eccentricity_squared * sin_lat * sin_lat
        )

        x = (n + height) * cos_lat * math.cos(lon_r)
        y = (n + height) * cos_lat * math.sin(lon_r)
        z = (n * (1.0 - self.eccentricity_squared) + height) * sin_lat

        return x, y, z

    def xyz_to_lat_lon_height(
        self, x: float, y: float, z: float
    ) -> Tuple[float, float, float]:
        """
        Convert geocentric coordinates to geodetic coordinates on this ellipsoid.

        Uses Bowring's closed-form approximation, which is accurate to well under a
        millimeter for points near the surface of the earth.

        Args:
            x: The geocentric x coordinate in meters
            y: The geocentric y coordinate in meters
            z: The geocentric z coordinate in meters

        Returns:
            A tuple of (latitude, longitude, height) with angles in decimal degrees
            and the height in meters
        """
        a = self.radius_equator
        b = self.radius_polar
        e2 = self.eccentricity_squared

        p = math.sqrt(x * x + y * y)
        if p == 0.0:
            # on the polar axis
            lat = 90.0 if z >= 0.0 else -90.0
            return lat, 0.0, abs(z) - b

        theta = math.atan2(z * a, p * b)
        e_dash2 = (a * a - b * b) / (b * b)
        sin_theta = math.sin(theta)
        cos_theta = math.cos(theta)

        lat_r = math.atan2(
            z + e_dash2 * b * sin_theta**3,
            p - e2 * a * cos_theta**3,
        )
        lon_r = math.atan2(y, x)

        sin_lat = math.sin(lat_r)
        n = a / math.sqrt(1.0 - e2 * sin_lat * sin_lat)
        height = p / math.cos(lat_r) - n

        return math.degrees(lat_r), math.degrees(lon_r), height


WGS84_ELLIPSOID = Ellipsoid(6378137.0, 6356752.314245179)
