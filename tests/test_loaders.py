"""
Unit tests for sinogram loaders.
"""

import os
import sys
import unittest

import numpy as np

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core import create_proj_geom, create_vol_geom
from loaders import DiskPhantomLoader, NpySinogramLoader, field_of_view_radius, project_disks, rasterize_disks


class TestDiskProjection(unittest.TestCase):

    def test_centred_disk_chord_lengths(self):
        geom = create_proj_geom("parallel", 1.0, 9, [0.0, 1.0])
        sino = project_disks(geom, [(0.0, 0.0, 3.0, 2.0)])
        # Detector 4 passes through the centre: chord 6, value 2
        self.assertAlmostEqual(float(sino[0, 4]), 12.0, places=4)
        self.assertAlmostEqual(float(sino[1, 4]), 12.0, places=4)
        self.assertEqual(float(sino[0, 0]), 0.0)

    def test_offset_disk_moves_with_angle(self):
        geom = create_proj_geom("parallel", 1.0, 21, [0.0, np.pi / 2])
        sino = project_disks(geom, [(5.0, 0.0, 1.0, 1.0)])
        self.assertEqual(int(np.argmax(sino[0])), 15)
        self.assertEqual(int(np.argmax(sino[1])), 10)

    def test_fan_centre_ray_matches_parallel(self):
        fan = create_proj_geom("fanflat", 1.0, 9, [0.0], source_origin=500.0, origin_detector=500.0)
        sino = project_disks(fan, [(0.0, 0.0, 3.0, 1.0)])
        self.assertAlmostEqual(float(sino[0, 4]), 6.0, places=4)

    def test_field_of_view(self):
        par = create_proj_geom("parallel", 2.0, 10, [0.0])
        self.assertEqual(field_of_view_radius(par), 10.0)
        fan = create_proj_geom("fanflat", 2.0, 10, [0.0], source_origin=100.0, origin_detector=100.0)
        self.assertLess(field_of_view_radius(fan), 5.0)

    def test_rasterize(self):
        image = rasterize_disks(create_vol_geom(9), [(0.0, 0.0, 2.0, 1.0)])
        self.assertEqual(image[4, 4], 1.0)
        self.assertEqual(image[0, 0], 0.0)


class TestDiskPhantomLoader(unittest.TestCase):

    def test_load_reports_progress_and_metadata(self):
        geom = create_proj_geom("parallel", 1.0, 32, np.linspace(0, np.pi, 6, endpoint=False))
        seen = []
        proj = DiskPhantomLoader().load(geom, callback=lambda p, m: seen.append(p))
        self.assertEqual(proj.dimensions, (6, 32))
        self.assertEqual(seen, [0, 100])
        self.assertEqual(proj.metadata["Type"], "Synthetic")
        self.assertEqual(len(proj.metadata["Disks"]), 3)

    def test_relative_disks_scale_with_detector(self):
        small = create_proj_geom("parallel", 1.0, 16, [0.0])
        large = create_proj_geom("parallel", 2.0, 16, [0.0])
        a = DiskPhantomLoader().resolve_disks(small)
        b = DiskPhantomLoader().resolve_disks(large)
        self.assertAlmostEqual(b[0][2], 2 * a[0][2])


class TestNpySinogramLoader(unittest.TestCase):

    def setUp(self):
        import tempfile
        self.tmp = tempfile.TemporaryDirectory()
        self.geom = create_proj_geom("parallel", 1.0, 8, [0.0, 1.0, 2.0])

    def tearDown(self):
        self.tmp.cleanup()

    def test_load(self):
        path = os.path.join(self.tmp.name, "sino.npy")
        np.save(path, np.ones((3, 8)))
        proj = NpySinogramLoader(self.geom).load(path)
        self.assertTrue(proj.is_initialized)
        self.assertEqual(proj.metadata["Source"], path)

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            NpySinogramLoader(self.geom).load(os.path.join(self.tmp.name, "absent.npy"))

    def test_shape_mismatch(self):
        path = os.path.join(self.tmp.name, "sino.npy")
        np.save(path, np.ones((8, 3)))
        with self.assertRaises(ValueError):
            NpySinogramLoader(self.geom).load(path)


if __name__ == '__main__':
    unittest.main()
