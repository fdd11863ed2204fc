from __future__ import annotations

import logging
import weakref
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from spatialref.constructs.ellipsoid import Ellipsoid
from spatialref.engine import proj_engine as engine
from spatialref.engine.proj_engine import EngineHandle
from spatialref.utils.crs import (
    AUTHORITY_PREFIXES,
    PROJ4_INIT_DIRECTIVE,
    PROJ4_PREFIX,
    WEB_MERCATOR_ALIASES,
    WEB_MERCATOR_PROJ4,
    WGS84_ALIASES,
    WGS84_PROJ4,
    WKT_PREFIXES,
)
from spatialref.utils.lock import ENGINE_LOCK

log = logging.getLogger(__name__)


class InitType(Enum):
    """
    Records which factory produced a spatial reference.
    """

    PROJ4 = "PROJ4"
    WKT = "WKT"


@dataclass(frozen=True)
class _DerivedState:
    is_geographic: bool
    is_mercator: bool
    name: str
    wkt: str
    ellipsoid: Ellipsoid


def _release_handle(handle: EngineHandle):
    with ENGINE_LOCK:
        engine.destroy_handle(handle)
    log.debug(f"released {handle}")


class SpatialReference:
    """
    A geographic or projected coordinate system backed by a PROJ engine object.

    A SpatialReference is created through one of its factories (create, from_proj4,
    from_wkt) and is immutable from the outside: its semantic properties (name,
    ellipsoid, WKT, geographic and mercator classification) are derived from the
    engine the first time any of them is read and never change afterwards.

    The engine object is owned exclusively by the instance and released exactly once,
    either explicitly through close() (or the context manager protocol) or when the
    instance is garbage collected. A borrowed instance (see borrow) never releases it.

    Args:
        handle: The engine handle holding the parsed coordinate system
        init_type: Which kind of initializer produced the handle
        init_string: The initializer text reported by init_string, kept verbatim
        owns_handle: If False the handle's lifetime is managed elsewhere and it is never released here

    Examples:
        >>> from spatialref.constructs.spatial_reference import SpatialReference
        >>>
        >>> wgs84 = SpatialReference.create('epsg:4326')
        >>> mercator = SpatialReference.create('epsg:900913')
        >>> print(wgs84.is_geographic, mercator.is_mercator)
        True True
        >>>
        >>> x, y = wgs84.transform(-74.0060, 40.7128, mercator)
        >>>
        >>> # differently phrased initializers can still denote the same system
        >>> wgs84.is_equivalent_to(SpatialReference.create('WGS84'))
        True
    """

    def __init__(
        self,
        handle: EngineHandle,
        init_type: InitType,
        init_string: str,
        owns_handle: bool = True,
    ):
        self._handle = handle
        self._init_type = init_type
        self._init_string = init_string
        self._init_string_lc = init_string.lower()
        self._owns_handle = owns_handle
        self._state: Optional[_DerivedState] = None

        if owns_handle:
            self._finalizer: Optional[weakref.finalize] = weakref.finalize(
                self, _release_handle, handle
            )
        else:
            self._finalizer = None

    def __repr__(self):
        return f"SpatialReference(init_type={self._init_type.value}, init_string={self._init_string!r})"

    def __enter__(self) -> SpatialReference:
        return self

    def __exit__(self, *exc_info):
        self.close()

    @classmethod
    def _from_text(
        cls,
        parse: Callable[[EngineHandle, str], bool],
        init_type: InitType,
        text: str,
        alias: Optional[str],
    ) -> Optional[SpatialReference]:
        with ENGINE_LOCK:
            handle = engine.new_handle()
            if parse(handle, text):
                return cls(handle, init_type, text if alias is None else alias)
            engine.destroy_handle(handle)

        log.warning(
            f"Unable to create spatial reference from {init_type.value}: {text}"
        )
        return None

    @classmethod
    def from_proj4(
        cls, text: str, alias: Optional[str] = None
    ) -> Optional[SpatialReference]:
        """
        Create a spatial reference from a PROJ definition.

        Args:
            text: The PROJ string to parse, e.g. '+proj=longlat +datum=WGS84'
            alias: The string reported by init_string; defaults to text

        Returns:
            A new SpatialReference tagged PROJ4, or None (with a logged warning) if
            PROJ rejects the definition
        """
        return cls._from_text(engine.parse_from_proj4, InitType.PROJ4, text, alias)

    @classmethod
    def from_wkt(
        cls, text: str, alias: Optional[str] = None
    ) -> Optional[SpatialReference]:
        """
        Create a spatial reference from a WKT definition of any length.

        Args:
            text: The WKT to parse
            alias: The string reported by init_string; defaults to text

        Returns:
            A new SpatialReference tagged WKT, or None (with a logged warning) if
            PROJ rejects the definition
        """
        return cls._from_text(engine.parse_from_wkt, InitType.WKT, text, alias)

    @classmethod
    def borrow(
        cls, handle: EngineHandle, init_type: InitType, init_string: str
    ) -> SpatialReference:
        """
        Wrap an engine handle whose lifetime is managed elsewhere.

        The returned instance never releases the handle, not even on close().
        """
        return cls(handle, init_type, init_string, owns_handle=False)

    @classmethod
    def create(cls, init: str) -> Optional[SpatialReference]:
        """
        Create a spatial reference from a free-form initializer string.

        The initializer is matched case-insensitively against these rules, in order:

        1. a legacy web mercator code (epsg:900913, epsg:3785, epsg:41001, epsg:54004,
           epsg:9804, epsg:9805) resolves to a fixed mercator PROJ definition
        2. 'epsg:4326' or 'wgs84' resolves to a fixed WGS84 longitude/latitude definition
        3. a string starting with '+' is parsed as a PROJ definition, exactly as given
        4. 'epsg:<code>' or 'osgeo:<code>' is parsed through PROJ's '+init=' directive
        5. a string starting with 'PROJCS' or 'GEOGCS' is parsed as WKT

        The first two rules must come before the fourth since their codes also carry the
        'epsg:' prefix. In every case the original input is kept as init_string.

        Args:
            init: The initializer, e.g. 'EPSG:4326', '+proj=utm +zone=33' or a WKT string

        Returns:
            A new SpatialReference, or None (with a logged warning) if the initializer
            is not recognized or PROJ rejects it

        Examples:
            >>> srs = SpatialReference.create('EPSG:32633')
            >>> srs.is_projected
            True
            >>> SpatialReference.create('not-a-crs') is None
            True
        """
        low = init.lower()
        for rule in INIT_RULES:
            if rule.matches(low):
                log.debug(f"initializer {init!r} matched the {rule.name} rule")
                return rule.build(low, init)

        log.warning(f"Unrecognized spatial reference initializer: {init}")
        return None

    @property
    def handle(self) -> EngineHandle:
        return self._handle

    @property
    def owns_handle(self) -> bool:
        return self._owns_handle

    @property
    def init_type(self) -> InitType:
        return self._init_type

    @property
    def init_string(self) -> str:
        return self._init_string

    @property
    def closed(self) -> bool:
        return self._handle.released

    def close(self):
        """
        Release the engine handle now rather than at garbage collection.

        Calling close more than once is harmless; borrowed handles are left alone.
        Properties derived before closing remain readable.
        """
        if self._finalizer is not None:
            self._finalizer()

    @property
    def _derived(self) -> _DerivedState:
        state = self._state
        if state is None:
            with ENGINE_LOCK:
                if self._state is None:
                    self._state = self._derive()
                state = self._state
        return state

    def _derive(self) -> _DerivedState:
        """Query everything the accessors expose from the engine; called once, under the lock."""
        handle = self._handle

        is_geographic = engine.is_geographic(handle)

        # every datum has an ellipsoid, projected or not
        semi_major, _ = engine.semi_major_axis(handle)
        semi_minor, _ = engine.semi_minor_axis(handle)
        ellipsoid = Ellipsoid(semi_major, semi_minor)

        name_node = "GEOGCS" if is_geographic else "PROJCS"
        name = engine.attribute_value(handle, name_node, 0) or ""

        # PROJ method names read "Mercator (variant A)", "Mercator (variant B)" and so on
        projection = (engine.attribute_value(handle, "PROJECTION", 0) or "").lower()
        is_mercator = projection.startswith("mercator")

        wkt = engine.export_to_wkt(handle) or ""

        return _DerivedState(
            is_geographic=is_geographic,
            is_mercator=is_mercator,
            name=name,
            wkt=wkt,
            ellipsoid=ellipsoid,
        )

    @property
    def is_geographic(self) -> bool:
        return self._derived.is_geographic

    @property
    def is_projected(self) -> bool:
        return not self._derived.is_geographic

    @property
    def is_mercator(self) -> bool:
        """True if the projection is a (spherical or ellipsoidal) mercator variant."""
        return self._derived.is_mercator

    @property
    def name(self) -> str:
        """The name of the GEOGCS node for geographic systems, else of the PROJCS node."""
        return self._derived.name

    @property
    def _display_name(self) -> str:
        # PROJ calls definitions without a name "unknown"
        name = self.name
        return name if name and name != "unknown" else self._init_string

    @property
    def wkt(self) -> str:
        """The WKT exported by the engine, or an empty string if the export failed."""
        return self._derived.wkt

    @property
    def ellipsoid(self) -> Ellipsoid:
        return self._derived.ellipsoid

    def is_equivalent_to(self, other: Optional[SpatialReference]) -> bool:
        """
        Check if two spatial references denote the same coordinate system.

        The checks run from cheapest to most expensive and stop at the first match:
        identity, identical initializer strings (ignoring case), identical WKT, two
        geographic systems on identical ellipsoids, and finally a full comparison by
        the engine. Both instances are initialized before comparing.

        Args:
            other: The spatial reference to compare against

        Returns:
            True if the two are equivalent; False otherwise or if other is None
        """
        state = self._derived

        if other is None:
            return False

        if other is self:
            return True

        if self._init_string_lc == other._init_string_lc:
            return True

        other_state = other._derived

        # an empty WKT means the export failed and says nothing about equivalence
        if state.wkt and state.wkt == other_state.wkt:
            return True

        if (
            state.is_geographic
            and other_state.is_geographic
            and state.ellipsoid.radius_equator == other_state.ellipsoid.radius_equator
            and state.ellipsoid.radius_polar == other_state.ellipsoid.radius_polar
        ):
            return True

        # last resort since it needs the engine
        with ENGINE_LOCK:
            return engine.same_as(self._handle, other._handle)

    def transform(
        self, x: float, y: float, target: SpatialReference
    ) -> Optional[Tuple[float, float]]:
        """
        Transform a single point from this coordinate system into another.

        The transform is not skipped for equivalent systems; that check is left to the caller.

        Args:
            x: The x value (longitude for geographic systems, easting for projected ones)
            y: The y value (latitude for geographic systems, northing for projected ones)
            target: The coordinate system to transform into

        Returns:
            The transformed (x, y), or None (with a logged warning) if the two systems
            cannot be converted or the point failed to transform

        Examples:
            >>> wgs84 = SpatialReference.create('wgs84')
            >>> mercator = SpatialReference.create('epsg:900913')
            >>> wgs84.transform(0.0, 0.0, mercator)
            (0.0, 0.0)
        """
        with engine.scoped_transform(self._handle, target._handle) as xform:
            if xform is None:
                log.warning(
                    "SRS xform not possible\n"
                    f"    From => {self._display_name}\n"
                    f"    To   => {target._display_name}"
                )
                return None

            result = engine.apply_transform(xform, x, y, 0.0)
            if result is None:
                log.warning(
                    f"Failed to xform a point from {self._display_name} "
                    f"to {target._display_name}"
                )
                return None

        new_x, new_y, _ = result
        return new_x, new_y

    def transform_points(
        self, xs: Sequence[float], ys: Sequence[float], target: SpatialReference
    ) -> Optional[Tuple[np.ndarray, np.ndarray]]:
        """
        Transform many points from this coordinate system into another with a single transform.

        Args:
            xs: The x values
            ys: The y values, the same length as xs
            target: The coordinate system to transform into

        Returns:
            Arrays of the transformed x and y values, or None (with a logged warning) if
            the systems cannot be converted or any point failed to transform

        Raises:
            ValueError: If xs and ys have different lengths
        """
        with engine.scoped_transform(self._handle, target._handle) as xform:
            if xform is None:
                log.warning(
                    "SRS xform not possible\n"
                    f"    From => {self._display_name}\n"
                    f"    To   => {target._display_name}"
                )
                return None

            result = engine.apply_transform_arrays(xform, xs, ys)
            if result is None:
                log.warning(
                    f"Failed to xform {len(xs)} points from {self._display_name} "
                    f"to {target._display_name}"
                )
                return None

        new_xs, new_ys, _ = result
        return new_xs, new_ys


class InitRule(NamedTuple):
    """
    One initializer dispatch rule used by SpatialReference.create.

    Attributes:
        name: A short label used in log messages
        matches: A predicate over the lower-cased initializer
        build: Builds the spatial reference from the lower-cased and the original initializer
    """

    name: str
    matches: Callable[[str], bool]
    build: Callable[[str, str], Optional[SpatialReference]]


# evaluated in order; the first matching rule wins
INIT_RULES: List[InitRule] = [
    InitRule(
        "web mercator alias",
        lambda low: low in WEB_MERCATOR_ALIASES,
        lambda low, init: SpatialReference.from_proj4(WEB_MERCATOR_PROJ4, init),
    ),
    InitRule(
        "wgs84 alias",
        lambda low: low in WGS84_ALIASES,
        lambda low, init: SpatialReference.from_proj4(WGS84_PROJ4, init),
    ),
    InitRule(
        "proj4",
        lambda low: low.startswith(PROJ4_PREFIX),
        lambda low, init: SpatialReference.from_proj4(init, init),
    ),
    InitRule(
        "authority code",
        lambda low: low.startswith(AUTHORITY_PREFIXES),
        lambda low, init: SpatialReference.from_proj4(PROJ4_INIT_DIRECTIVE + low, init),
    ),
    InitRule(
        "wkt",
        lambda low: low.startswith(WKT_PREFIXES),
        lambda low, init: SpatialReference.from_wkt(init, init),
    ),
]

create = SpatialReference.create
