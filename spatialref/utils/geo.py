from typing import Tuple

from spatialref.constructs.coordinate import Coordinate
from spatialref.utils.srs import LATLON_SRS, XY_SRS


def xy_to_latlon(x: float, y: float) -> Tuple[float, float]:
    """
    Transform mercator (XY_SRS) coordinates to WGS84 latitude/longitude.

    Args:
        x: The easting in meters
        y: The northing in meters

    Returns:
        A tuple of (latitude, longitude) in decimal degrees

    Raises:
        ValueError: If the point cannot be transformed
    """
    result = XY_SRS.transform(x, y, LATLON_SRS)
    if result is None:
        raise ValueError(f"Unable to convert ({x}, {y}) to lat/lon")
    lon, lat = result

    return lat, lon


def latlon_to_xy(lat: float, lon: float) -> Tuple[float, float]:
    """
    Transform WGS84 latitude/longitude to mercator (XY_SRS) coordinates.

    Args:
        lat: The latitude in decimal degrees (range: -90 to 90)
        lon: The longitude in decimal degrees (range: -180 to 180)

    Returns:
        A tuple of (x, y) in meters

    Raises:
        ValueError: If the point cannot be transformed, e.g. at the poles

    Examples:
        >>> x, y = latlon_to_xy(0.0, 1.0)
        >>> print(f"X: {x:.1f}m")
        X: 111319.5m
    """
    result = LATLON_SRS.transform(lon, lat, XY_SRS)
    if result is None:
        raise ValueError(f"Unable to convert lat/lon ({lat}, {lon}) to xy")
    x, y = result

    return x, y


def coord_to_coord_dist(a: Coordinate, b: Coordinate) -> float:
    """
    Calculate the Euclidean distance between two coordinates.

    The distance is computed in the coordinates' spatial reference, so for distances
    in meters both should be in a projected system such as XY_SRS.

    Args:
        a: The first coordinate
        b: The second coordinate. Must be in a spatial reference equivalent to that of a.

    Returns:
        The Euclidean distance in the units of the coordinates' spatial reference

    Raises:
        TypeError: If the two coordinates are in non-equivalent spatial references
    """
    if not a.srs.is_equivalent_to(b.srs):
        raise TypeError(
            f"cannot measure between coordinates in {a.srs.init_string} and {b.srs.init_string}"
        )

    dist = a.geom.distance(b.geom)

    return dist
