"""Well-known coordinate system definitions and initializer prefixes used throughout spatialref.

This module defines the fixed PROJ definitions substituted for well-known codes:
- WEB_MERCATOR_PROJ4: Mercator on the WGS84 datum, used for all the legacy web mercator codes
- WGS84_PROJ4: WGS84 geographic longitude/latitude (EPSG:4326)

It also names the prefixes used to route free-form initializer strings.
"""

# Mercator on WGS84; substituted for the legacy web mercator codes so that they
# all resolve to the same definition regardless of what the EPSG database says
WEB_MERCATOR_PROJ4 = (
    "+proj=merc +lon_0=0 +k=1 +x_0=0 +y_0=0 +ellps=WGS84 +datum=WGS84 +units=m +no_defs"
)

# WGS84 longitude/latitude in decimal degrees
WGS84_PROJ4 = "+proj=longlat +ellps=WGS84 +datum=WGS84 +no_defs"

# Lower-case codes that all denote (spherical or ellipsoidal) web mercator
WEB_MERCATOR_ALIASES = frozenset(
    [
        "epsg:900913",
        "epsg:3785",
        "epsg:41001",
        "epsg:54004",
        "epsg:9804",
        "epsg:9805",
    ]
)

# Lower-case codes that denote WGS84 geographic coordinates
WGS84_ALIASES = frozenset(["epsg:4326", "wgs84"])

# Initializer prefixes, compared against the lower-cased initializer
PROJ4_PREFIX = "+"
AUTHORITY_PREFIXES = ("epsg:", "osgeo:")
WKT_PREFIXES = ("projcs", "geogcs")

# Authority codes are handed to PROJ through its init-file directive
PROJ4_INIT_DIRECTIVE = "+init="
