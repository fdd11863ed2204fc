from __future__ import annotations

from typing import Any, NamedTuple, Union

from shapely.geometry import Point

from spatialref.constructs.spatial_reference import SpatialReference
from spatialref.utils.srs import LATLON_SRS


class Coordinate(NamedTuple):
    """
    Represents a single point together with the spatial reference it is expressed in.

    A Coordinate is an immutable object combining a point geometry with its spatial
    reference, so that it can be moved between coordinate systems without losing track
    of which one its values belong to.

    Attributes:
        coordinate_id: The unique identifier for this coordinate (can be any hashable type)
        geom: The Shapely Point geometry representing the spatial location
        srs: The SpatialReference defining the coordinate space
        x: The x-coordinate value (longitude in geographic systems, easting in projected systems)
        y: The y-coordinate value (latitude in geographic systems, northing in projected systems)

    Examples:
        >>> from spatialref.constructs.coordinate import Coordinate
        >>> coord = Coordinate.from_lat_lon(40.7128, -74.0060)
        >>> print(coord.x, coord.y)
        -74.006 40.7128

        >>> mercator = coord.to_srs('epsg:900913')
        >>> print(mercator.srs.is_mercator)
        True
    """

    coordinate_id: Any
    geom: Point
    srs: SpatialReference

    def __repr__(self):
        srs_a = self.srs.init_string if self.srs else "Null"
        return f"Coordinate(coordinate_id={self.coordinate_id}, x={self.x}, y={self.y}, srs={srs_a})"

    @classmethod
    def from_lat_lon(cls, lat: float, lon: float) -> Coordinate:
        """
        Create a coordinate from WGS84 latitude and longitude values.

        Args:
            lat: The latitude in decimal degrees (range: -90 to 90)
            lon: The longitude in decimal degrees (range: -180 to 180)

        Returns:
            A new Coordinate in LATLON_SRS with no coordinate_id
        """
        return cls(coordinate_id=None, geom=Point(lon, lat), srs=LATLON_SRS)

    @property
    def x(self) -> float:
        return self.geom.x

    @property
    def y(self) -> float:
        return self.geom.y

    def to_srs(self, new_srs: Union[SpatialReference, str]) -> Coordinate:
        """
        Transform this coordinate into a different spatial reference.

        If the target is equivalent to the current spatial reference the coordinate is
        returned unchanged.

        Args:
            new_srs: The target, either a SpatialReference or any initializer accepted by
                SpatialReference.create (e.g. 'EPSG:32618' or '+proj=longlat +datum=WGS84')

        Returns:
            A new Coordinate in the target spatial reference; the coordinate_id is preserved

        Raises:
            ValueError: If new_srs cannot be parsed, or if the point cannot be transformed
        """
        if isinstance(new_srs, str):
            parsed = SpatialReference.create(new_srs)
            if parsed is None:
                raise ValueError(
                    f"Could not parse incoming `new_srs` parameter: {new_srs}"
                )
            new_srs = parsed

        if new_srs.is_equivalent_to(self.srs):
            return self

        result = self.srs.transform(self.x, self.y, new_srs)
        if result is None:
            raise ValueError(
                f"Unable to convert {self.srs.init_string} ({self.x}, {self.y}) "
                f"-> {new_srs.init_string}"
            )
        new_x, new_y = result

        return Coordinate(
            coordinate_id=self.coordinate_id,
            geom=Point(new_x, new_y),
            srs=new_srs,
        )
