"""Handle-oriented adapter over the PROJ engine, reached through pyproj.

Engine objects are wrapped in small mutable holders (EngineHandle, TransformHandle)
so that their lifetime can be owned, borrowed and released explicitly. Every
function here runs under the process-wide ENGINE_LOCK, and pyproj errors never
leave this module: they are turned into boolean or None results.
"""

from __future__ import annotations

import logging
import math
import warnings
from contextlib import contextmanager
from typing import Iterator, Optional, Sequence, Tuple

import numpy as np
from pyproj import CRS, Transformer
from pyproj.enums import WktVersion
from pyproj.exceptions import CRSError, ProjError

from spatialref.utils.lock import ENGINE_LOCK, engine_locked

log = logging.getLogger(__name__)

# values PROJ/GDAL report for the axes when a definition has no ellipsoid
WGS84_SEMI_MAJOR = 6378137.0
WGS84_SEMI_MINOR = 6356752.314245179


class EngineHandle:
    """
    An opaque holder for one engine coordinate system object.

    A handle starts out empty (see new_handle), is filled by one of the parse
    functions and is emptied for good by destroy_handle. Reading the engine object
    from a released handle raises a ValueError.
    """

    __slots__ = ("_crs", "_released")

    def __init__(self):
        self._crs: Optional[CRS] = None
        self._released = False

    def __repr__(self):
        state = "released" if self._released else ("empty" if self._crs is None else "set")
        return f"EngineHandle({state})"

    @property
    def released(self) -> bool:
        return self._released

    @property
    def crs(self) -> CRS:
        if self._released:
            raise ValueError("engine handle has already been released")
        if self._crs is None:
            raise ValueError("engine handle does not hold a coordinate system")
        return self._crs


class TransformHandle:
    """An opaque holder for one engine transformation between two coordinate systems."""

    __slots__ = ("_transformer",)

    def __init__(self, transformer: Transformer):
        self._transformer: Optional[Transformer] = transformer

    @property
    def released(self) -> bool:
        return self._transformer is None

    @property
    def transformer(self) -> Transformer:
        if self._transformer is None:
            raise ValueError("transform handle has already been released")
        return self._transformer


@engine_locked
def new_handle() -> EngineHandle:
    return EngineHandle()


@engine_locked
def parse_from_proj4(handle: EngineHandle, text: str) -> bool:
    """
    Parse a PROJ definition into the handle.

    Args:
        handle: An empty handle created by new_handle
        text: The PROJ string, e.g. '+proj=longlat +datum=WGS84' or '+init=epsg:32633'

    Returns:
        True if the engine accepted the definition
    """
    try:
        with warnings.catch_warnings():
            # '+init=<authority>:<code>' is deprecated but still supported by PROJ
            warnings.simplefilter("ignore", FutureWarning)
            handle._crs = CRS.from_proj4(text)
    except CRSError as e:
        log.debug(f"PROJ rejected {text!r}: {e}")
        return False

    return True


@engine_locked
def parse_from_wkt(handle: EngineHandle, text: str) -> bool:
    """
    Parse a WKT definition into the handle.

    The complete text is handed to the engine; there is no intermediate buffer so
    arbitrarily long definitions are accepted.

    Args:
        handle: An empty handle created by new_handle
        text: The WKT definition

    Returns:
        True if the engine accepted the definition
    """
    try:
        handle._crs = CRS.from_wkt(text)
    except CRSError as e:
        log.debug(f"PROJ rejected WKT {text!r}: {e}")
        return False

    return True


@engine_locked
def destroy_handle(handle: EngineHandle):
    """Drop the engine object held by the handle. Releasing twice is a no-op."""
    if handle._released:
        return
    handle._crs = None
    handle._released = True


@engine_locked
def is_geographic(handle: EngineHandle) -> bool:
    return bool(handle.crs.is_geographic)


@engine_locked
def semi_major_axis(handle: EngineHandle) -> Tuple[float, bool]:
    """
    Get the semi-major axis of the handle's ellipsoid in meters.

    Returns:
        A tuple of (value, error). When the definition carries no ellipsoid the
        WGS84 value is returned with error set to True.
    """
    ellipsoid = handle.crs.ellipsoid
    if ellipsoid is None:
        return WGS84_SEMI_MAJOR, True
    return float(ellipsoid.semi_major_metre), False


@engine_locked
def semi_minor_axis(handle: EngineHandle) -> Tuple[float, bool]:
    """
    Get the semi-minor axis of the handle's ellipsoid in meters.

    Returns:
        A tuple of (value, error). When the definition carries no ellipsoid the
        WGS84 value is returned with error set to True.
    """
    ellipsoid = handle.crs.ellipsoid
    if ellipsoid is None:
        return WGS84_SEMI_MINOR, True
    return float(ellipsoid.semi_minor_metre), False


def _projection_method(crs: CRS) -> Optional[str]:
    # '+towgs84' wraps the projected system in a bound one
    if crs.is_bound:
        crs = crs.source_crs
    operation = crs.coordinate_operation
    return None if operation is None else operation.method_name


# WKT1 node name -> reader of that node's name from the engine's object model
_NODE_NAMES = {
    "GEOGCS": lambda crs: None if crs.geodetic_crs is None else crs.geodetic_crs.name,
    "PROJCS": lambda crs: crs.name if crs.is_projected else None,
    "PROJECTION": lambda crs: _projection_method(crs) if crs.is_projected else None,
    "DATUM": lambda crs: None if crs.datum is None else crs.datum.name,
    "SPHEROID": lambda crs: None if crs.ellipsoid is None else crs.ellipsoid.name,
    "PRIMEM": lambda crs: None if crs.prime_meridian is None else crs.prime_meridian.name,
}


@engine_locked
def attribute_value(handle: EngineHandle, node: str, child_index: int = 0) -> Optional[str]:
    """
    Get the name carried by a WKT1 node of the handle's coordinate system.

    Only the name (the first child of the node) is available.

    Args:
        handle: A parsed handle
        node: One of GEOGCS, PROJCS, PROJECTION, DATUM, SPHEROID or PRIMEM
        child_index: The child to read; only 0 is supported

    Returns:
        The name, e.g. 'WGS 84' for GEOGCS of EPSG:4326, or None if the
        coordinate system has no such node

    Examples:
        >>> attribute_value(handle, "PROJECTION")
        'Mercator (variant A)'
    """
    reader = _NODE_NAMES.get(node.upper())
    if reader is None or child_index != 0:
        return None
    return reader(handle.crs) or None


@engine_locked
def export_to_wkt(handle: EngineHandle) -> Optional[str]:
    """Export the handle as WKT1 (GDAL flavour); None if the engine cannot express it."""
    try:
        wkt = handle.crs.to_wkt(version=WktVersion.WKT1_GDAL)
    except CRSError as e:
        log.debug(f"unable to export {handle.crs.name!r} to WKT: {e}")
        return None
    return wkt or None


@engine_locked
def same_as(handle: EngineHandle, other: EngineHandle) -> bool:
    """Ask the engine for a full semantic comparison of two coordinate systems."""
    return bool(handle.crs.equals(other.crs, ignore_axis_order=True))


@engine_locked
def new_transform(src: EngineHandle, dst: EngineHandle) -> Optional[TransformHandle]:
    """
    Build a transformation from src to dst with x=easting/longitude, y=northing/latitude.

    Returns:
        The transform handle, or None if the engine found no way to convert between the two
    """
    try:
        transformer = Transformer.from_crs(src.crs, dst.crs, always_xy=True)
    except (CRSError, ProjError) as e:
        log.debug(f"no transformation from {src.crs.name!r} to {dst.crs.name!r}: {e}")
        return None
    return TransformHandle(transformer)


@engine_locked
def apply_transform(
    xform: TransformHandle, x: float, y: float, z: float = 0.0
) -> Optional[Tuple[float, float, float]]:
    """
    Transform a single point.

    Returns:
        The transformed (x, y, z), or None if the engine reported a failure or
        produced non-finite values
    """
    try:
        new_x, new_y, new_z = xform.transformer.transform(x, y, z, errcheck=True)
    except ProjError as e:
        log.debug(f"point ({x}, {y}, {z}) failed to transform: {e}")
        return None

    if not all(math.isfinite(v) for v in (new_x, new_y, new_z)):
        return None

    return float(new_x), float(new_y), float(new_z)


@engine_locked
def apply_transform_arrays(
    xform: TransformHandle,
    xs: Sequence[float],
    ys: Sequence[float],
    zs: Optional[Sequence[float]] = None,
) -> Optional[Tuple[np.ndarray, np.ndarray, np.ndarray]]:
    """
    Transform many points at once.

    Returns:
        Arrays of transformed x, y and z values, or None if any point failed
    """
    xs = np.asarray(xs, dtype=float)
    ys = np.asarray(ys, dtype=float)
    zs = np.zeros_like(xs) if zs is None else np.asarray(zs, dtype=float)

    if not xs.shape == ys.shape == zs.shape:
        raise ValueError(
            f"coordinate arrays must have the same shape but found {xs.shape}, {ys.shape}, {zs.shape}"
        )

    try:
        new_xs, new_ys, new_zs = xform.transformer.transform(xs, ys, zs, errcheck=True)
    except ProjError as e:
        log.debug(f"{xs.size} points failed to transform: {e}")
        return None

    new_xs, new_ys, new_zs = (np.asarray(a, dtype=float) for a in (new_xs, new_ys, new_zs))
    if not (
        np.isfinite(new_xs).all() and np.isfinite(new_ys).all() and np.isfinite(new_zs).all()
    ):
        return None

    return new_xs, new_ys, new_zs


@engine_locked
def destroy_transform(xform: TransformHandle):
    xform._transformer = None


@contextmanager
def scoped_transform(
    src: EngineHandle, dst: EngineHandle
) -> Iterator[Optional[TransformHandle]]:
    """
    Hold the engine lock for the lifetime of a transformation and always destroy it.

    Yields:
        The transform handle, or None if no transformation is possible
    """
    with ENGINE_LOCK:
        xform = new_transform(src, dst)
        try:
            yield xform
        finally:
            if xform is not None:
                destroy_transform(xform)
