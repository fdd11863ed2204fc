"""Spatial reference handles shared throughout spatialref.

- LATLON_SRS: WGS84 geographic coordinates (EPSG:4326)
- XY_SRS: Mercator on WGS84, the definition behind the legacy web mercator codes
"""

from spatialref.constructs.spatial_reference import SpatialReference

# WGS84 longitude/latitude in decimal degrees
# Range: latitude [-90, 90], longitude [-180, 180]
LATLON_SRS = SpatialReference.create("wgs84")

# Coordinates are in meters (easting, northing)
XY_SRS = SpatialReference.create("epsg:900913")
