from spatialref.constructs.ellipsoid import Ellipsoid
from spatialref.constructs.spatial_reference import InitType, SpatialReference, create

__all__ = ["Ellipsoid", "InitType", "SpatialReference", "create"]
