import gc
import threading
from unittest import TestCase, mock

from spatialref.constructs.ellipsoid import Ellipsoid
from spatialref.constructs.spatial_reference import InitType, SpatialReference
from spatialref.engine import proj_engine
from spatialref.engine.proj_engine import EngineHandle
from tests import WGS84_WKT


class TestSpatialReferenceFactories(TestCase):
    """Test the factories that build spatial references"""

    def test_create_wgs84_code(self):
        """Test that the EPSG:4326 shortcut yields a geographic PROJ4 reference"""
        srs = SpatialReference.create("epsg:4326")

        self.assertIsNotNone(srs)
        self.assertEqual(srs.init_type, InitType.PROJ4)
        self.assertEqual(srs.init_string, "epsg:4326")
        self.assertTrue(srs.is_geographic)
        self.assertFalse(srs.is_projected)
        self.assertFalse(srs.is_mercator)

    def test_create_keeps_original_case_as_init_string(self):
        srs = SpatialReference.create("EPSG:4326")

        self.assertEqual(srs.init_string, "EPSG:4326")

    def test_create_proj_string(self):
        """Test that a PROJ string is parsed directly"""
        srs = SpatialReference.create("+proj=longlat +datum=WGS84")

        self.assertIsNotNone(srs)
        self.assertEqual(srs.init_type, InitType.PROJ4)
        self.assertTrue(srs.is_geographic)

    def test_create_proj_string_with_upper_case_values(self):
        init = "+proj=utm +zone=33 +datum=WGS84 +units=m +no_defs"

        srs = SpatialReference.create(init)

        self.assertIsNotNone(srs)
        self.assertEqual(srs.init_string, init)
        self.assertTrue(srs.is_projected)
        self.assertFalse(srs.is_mercator)

    def test_create_web_mercator_code(self):
        """Test that the legacy web mercator codes are projected mercator systems"""
        for code in ["epsg:900913", "epsg:3785"]:
            with self.subTest(code=code):
                srs = SpatialReference.create(code)

                self.assertIsNotNone(srs)
                self.assertTrue(srs.is_projected)
                self.assertTrue(srs.is_mercator)

    def test_create_authority_code(self):
        """Test that other EPSG codes go through PROJ's init directive"""
        srs = SpatialReference.create("EPSG:32633")

        self.assertIsNotNone(srs)
        self.assertEqual(srs.init_type, InitType.PROJ4)
        self.assertTrue(srs.is_projected)
        self.assertFalse(srs.is_mercator)

    def test_create_wkt(self):
        """Test that a WKT string is parsed as WKT and keeps its name"""
        srs = SpatialReference.create(WGS84_WKT)

        self.assertIsNotNone(srs)
        self.assertEqual(srs.init_type, InitType.WKT)
        self.assertEqual(srs.init_string, WGS84_WKT)
        self.assertTrue(srs.is_geographic)
        self.assertEqual(srs.name, "WGS 84")

    def test_from_wkt_accepts_long_definitions(self):
        """Test that WKT longer than any fixed-size parse buffer is accepted"""
        padded = WGS84_WKT.replace(
            'GEOGCS["WGS 84"', 'GEOGCS["' + "WGS 84 " + "x" * 8192 + '"'
        )

        srs = SpatialReference.from_wkt(padded)

        self.assertIsNotNone(srs)
        self.assertGreater(len(srs.init_string), 8192)
        self.assertTrue(srs.name.startswith("WGS 84 "))

    def test_from_proj4_defaults_alias_to_text(self):
        srs = SpatialReference.from_proj4("+proj=longlat +datum=WGS84")

        self.assertEqual(srs.init_string, "+proj=longlat +datum=WGS84")

    def test_create_unrecognized_returns_none(self):
        """Test that an unrecognized initializer yields no instance and a warning"""
        with self.assertLogs(
            "spatialref.constructs.spatial_reference", level="WARNING"
        ) as logs:
            srs = SpatialReference.create("not-a-crs")

        self.assertIsNone(srs)
        self.assertIn("not-a-crs", logs.output[0])

    def test_create_rejected_proj_string_returns_none(self):
        with self.assertLogs(
            "spatialref.constructs.spatial_reference", level="WARNING"
        ) as logs:
            srs = SpatialReference.create("+proj=not_a_projection")

        self.assertIsNone(srs)
        self.assertIn("+proj=not_a_projection", logs.output[0])

    def test_malformed_wkt_releases_partial_handle(self):
        """Test that a rejected WKT yields no instance and releases the engine handle"""
        handles = []

        def _new_handle():
            h = EngineHandle()
            handles.append(h)
            return h

        with mock.patch.object(proj_engine, "new_handle", side_effect=_new_handle):
            with self.assertLogs(
                "spatialref.constructs.spatial_reference", level="WARNING"
            ):
                srs = SpatialReference.create("GEOGCS[")

        self.assertIsNone(srs)
        self.assertEqual(len(handles), 1)
        self.assertTrue(handles[0].released)


class TestLazyInitialization(TestCase):
    """Test that derived properties are computed once and then reused"""

    def test_nothing_is_derived_at_construction(self):
        with mock.patch.object(
            proj_engine, "is_geographic", wraps=proj_engine.is_geographic
        ) as is_geographic:
            SpatialReference.create("epsg:4326")

        is_geographic.assert_not_called()

    def test_repeated_reads_are_identical(self):
        srs = SpatialReference.create("epsg:900913")

        first = (srs.name, srs.wkt, srs.ellipsoid, srs.is_mercator, srs.is_geographic)
        second = (srs.name, srs.wkt, srs.ellipsoid, srs.is_mercator, srs.is_geographic)

        self.assertEqual(first, second)
        self.assertIs(srs.ellipsoid, srs.ellipsoid)
        self.assertTrue(srs.wkt.startswith("PROJCS"))

    def test_engine_is_queried_once(self):
        """Test that reading every property only derives the state a single time"""
        srs = SpatialReference.create("epsg:4326")

        with mock.patch.object(
            proj_engine, "is_geographic", wraps=proj_engine.is_geographic
        ) as is_geographic:
            _ = srs.is_geographic
            _ = srs.is_projected
            _ = srs.name
            _ = srs.wkt
            _ = srs.ellipsoid
            _ = srs.is_mercator

        self.assertEqual(is_geographic.call_count, 1)

    def test_wkt_is_exported_once(self):
        """Test that name and mercator detection do not need their own WKT exports"""
        srs = SpatialReference.create("epsg:900913")

        with mock.patch.object(
            proj_engine, "export_to_wkt", wraps=proj_engine.export_to_wkt
        ) as export_to_wkt:
            _ = srs.name
            _ = srs.is_mercator
            _ = srs.wkt

        self.assertEqual(export_to_wkt.call_count, 1)
        self.assertTrue(srs.is_mercator)
        self.assertTrue(srs.wkt.startswith("PROJCS"))

    def test_concurrent_first_access_derives_once(self):
        """Test that racing threads all see the same fully derived state"""
        srs = SpatialReference.create("epsg:900913")
        n_threads = 8
        barrier = threading.Barrier(n_threads)
        results = []

        def _read():
            barrier.wait()
            results.append((srs.name, srs.wkt, srs.ellipsoid, srs.is_mercator))

        with mock.patch.object(
            proj_engine, "is_geographic", wraps=proj_engine.is_geographic
        ) as is_geographic:
            threads = [threading.Thread(target=_read) for _ in range(n_threads)]
            for t in threads:
                t.start()
            for t in threads:
                t.join()

        self.assertEqual(is_geographic.call_count, 1)
        self.assertEqual(len(results), n_threads)
        self.assertEqual(len(set(results)), 1)

    def test_ellipsoid_is_set_for_projected_systems(self):
        srs = SpatialReference.create("epsg:900913")

        self.assertIsInstance(srs.ellipsoid, Ellipsoid)
        self.assertEqual(srs.ellipsoid.radius_equator, 6378137.0)
        self.assertAlmostEqual(srs.ellipsoid.radius_polar, 6356752.314245, places=3)

    def test_failed_wkt_export_leaves_wkt_empty(self):
        """Test that a failed WKT export degrades to an empty string"""
        srs = SpatialReference.from_wkt(WGS84_WKT)

        with mock.patch.object(proj_engine, "export_to_wkt", return_value=None):
            self.assertEqual(srs.wkt, "")
            self.assertEqual(srs.name, "WGS 84")
            self.assertTrue(srs.is_geographic)


class TestHandleOwnership(TestCase):
    """Test that owned engine handles are released exactly once and borrowed ones never"""

    def test_close_releases_handle(self):
        srs = SpatialReference.create("wgs84")
        handle = srs.handle

        srs.close()

        self.assertTrue(srs.closed)
        self.assertTrue(handle.released)

    def test_close_twice_releases_once(self):
        srs = SpatialReference.create("wgs84")

        with mock.patch.object(
            proj_engine, "destroy_handle", wraps=proj_engine.destroy_handle
        ) as destroy_handle:
            srs.close()
            srs.close()

        self.assertEqual(destroy_handle.call_count, 1)

    def test_derived_state_survives_close(self):
        srs = SpatialReference.create("wgs84")
        name = srs.name

        srs.close()

        self.assertEqual(srs.name, name)

    def test_closed_before_init_raises(self):
        srs = SpatialReference.create("wgs84")
        srs.close()

        with self.assertRaises(ValueError):
            _ = srs.name

    def test_context_manager_releases_handle(self):
        with SpatialReference.create("wgs84") as srs:
            handle = srs.handle
            self.assertTrue(srs.is_geographic)

        self.assertTrue(handle.released)

    def test_garbage_collection_releases_handle(self):
        srs = SpatialReference.create("wgs84")
        handle = srs.handle

        del srs
        gc.collect()

        self.assertTrue(handle.released)

    def test_borrowed_handle_is_never_released(self):
        """Test that a borrowing instance leaves the handle to its owner"""
        owner = SpatialReference.create("wgs84")
        borrowed = SpatialReference.borrow(owner.handle, InitType.PROJ4, "borrowed")

        self.assertFalse(borrowed.owns_handle)
        self.assertTrue(borrowed.is_geographic)

        borrowed.close()
        del borrowed
        gc.collect()

        self.assertFalse(owner.handle.released)
        self.assertTrue(owner.is_geographic)
