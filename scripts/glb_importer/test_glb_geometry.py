#!/usr/bin/env python3
import unittest
from pathlib import Path
import sys

import numpy as np


SCRIPT_DIR = Path(__file__).resolve().parent
if str(SCRIPT_DIR) not in sys.path:
    sys.path.insert(0, str(SCRIPT_DIR))

import glb_geometry as geometry


class ConversionTests(unittest.TestCase):
    def test_handedness_negates_z_and_is_an_involution(self) -> None:
        source = np.array([[1.0, 2.0, 3.0], [-4.0, 0.0, -0.5]], dtype=np.float32)
        flipped = geometry.flip_handedness(source)

        np.testing.assert_array_equal(flipped, [[1.0, 2.0, -3.0], [-4.0, 0.0, 0.5]])
        np.testing.assert_array_equal(geometry.flip_handedness(flipped), source)
        np.testing.assert_array_equal(source, [[1.0, 2.0, 3.0], [-4.0, 0.0, -0.5]])

    def test_uv_flip(self) -> None:
        source = np.array([[0.0, 0.0], [0.25, 1.0], [1.0, 0.5]], dtype=np.float32)
        flipped = geometry.flip_uv_origin(source)

        np.testing.assert_allclose(flipped, [[0.0, 1.0], [0.25, 0.0], [1.0, 0.5]])
        np.testing.assert_allclose(geometry.flip_uv_origin(flipped), source)

    def test_winding_swaps_first_and_third_index(self) -> None:
        source = np.array([0, 1, 2, 3, 4, 5], dtype=np.uint32)
        reversed_ = geometry.reverse_winding(source)

        self.assertEqual(reversed_.tolist(), [2, 1, 0, 5, 4, 3])
        self.assertEqual(geometry.reverse_winding(reversed_).tolist(), source.tolist())
        self.assertEqual(source.tolist(), [0, 1, 2, 3, 4, 5])

    def test_winding_leaves_incomplete_tail(self) -> None:
        source = np.array([0, 1, 2, 7, 8], dtype=np.uint32)
        self.assertEqual(geometry.reverse_winding(source).tolist(), [2, 1, 0, 7, 8])

    def test_empty_inputs(self) -> None:
        self.assertEqual(geometry.flip_handedness(np.zeros((0, 3))).shape, (0, 3))
        self.assertEqual(geometry.flip_uv_origin(np.zeros((0, 2))).shape, (0, 2))
        self.assertEqual(geometry.reverse_winding(np.zeros(0, dtype=np.uint32)).tolist(), [])

    def test_sequential_indices(self) -> None:
        values = geometry.sequential_indices(4)
        self.assertEqual(values.dtype, np.uint32)
        self.assertEqual(values.tolist(), [0, 1, 2, 3])

    def test_index_format_threshold(self) -> None:
        self.assertEqual(geometry.index_format_for(1000), geometry.INDEX_FORMAT_16)
        self.assertEqual(geometry.index_format_for(65535), geometry.INDEX_FORMAT_16)
        self.assertEqual(geometry.index_format_for(65536), geometry.INDEX_FORMAT_32)
        self.assertEqual(geometry.index_format_for(70000), geometry.INDEX_FORMAT_32)


class RecomputeTests(unittest.TestCase):
    def setUp(self) -> None:
        # Unit right triangle after z negation and winding reversal.
        self.positions = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0]], dtype=np.float32)
        self.indices = np.array([2, 1, 0], dtype=np.uint32)

    def test_normals_follow_converted_winding(self) -> None:
        normals = geometry.compute_vertex_normals(self.positions, self.indices)

        self.assertEqual(normals.dtype, np.float32)
        np.testing.assert_allclose(normals, [[0.0, 0.0, -1.0]] * 3, atol=1e-6)

    def test_unreferenced_vertex_gets_zero_normal(self) -> None:
        positions = np.vstack([self.positions, [[5.0, 5.0, 5.0]]])
        normals = geometry.compute_vertex_normals(positions, self.indices)
        np.testing.assert_array_equal(normals[3], [0.0, 0.0, 0.0])

    def test_normals_are_area_weighted(self) -> None:
        positions = np.array(
            [[0, 0, 0], [1, 0, 0], [0, 1, 0], [0, 0, 0], [0, 0, 3], [0, 3, 0]],
            dtype=np.float32,
        )
        # Both triangles share vertex 0; the larger one dominates its normal.
        indices = np.array([0, 1, 2, 0, 4, 5], dtype=np.uint32)
        normals = geometry.compute_vertex_normals(positions, indices)

        self.assertAlmostEqual(float(np.linalg.norm(normals[0])), 1.0, places=5)
        self.assertGreater(abs(normals[0][0]), abs(normals[0][2]))

    def test_tangents_follow_u_direction(self) -> None:
        positions = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0]], dtype=np.float32)
        normals = np.array([[0.0, 0.0, 1.0]] * 3, dtype=np.float32)
        uvs = np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]], dtype=np.float32)

        tangents = geometry.compute_tangents(positions, normals, uvs, np.array([0, 1, 2], dtype=np.uint32))

        self.assertEqual(tangents.shape, (3, 4))
        np.testing.assert_allclose(tangents, [[1.0, 0.0, 0.0, 1.0]] * 3, atol=1e-6)

    def test_mirrored_uvs_flip_handedness(self) -> None:
        positions = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0]], dtype=np.float32)
        normals = np.array([[0.0, 0.0, 1.0]] * 3, dtype=np.float32)
        uvs = np.array([[0.0, 1.0], [1.0, 1.0], [0.0, 0.0]], dtype=np.float32)

        tangents = geometry.compute_tangents(positions, normals, uvs, np.array([0, 1, 2], dtype=np.uint32))
        np.testing.assert_allclose(tangents[:, 3], [-1.0, -1.0, -1.0])

    def test_degenerate_uvs_give_unit_perpendicular_tangent(self) -> None:
        normals = geometry.compute_vertex_normals(self.positions, self.indices)
        uvs = np.zeros((3, 2), dtype=np.float32)

        tangents = geometry.compute_tangents(self.positions, normals, uvs, self.indices)

        lengths = np.linalg.norm(tangents[:, :3], axis=1)
        np.testing.assert_allclose(lengths, [1.0, 1.0, 1.0], atol=1e-6)
        np.testing.assert_allclose(np.sum(tangents[:, :3] * normals, axis=1), [0.0, 0.0, 0.0], atol=1e-6)
        self.assertTrue(np.all(np.abs(tangents[:, 3]) == 1.0))

    def test_bounds_center_and_extents(self) -> None:
        center, extents = geometry.compute_bounds(np.array([[-1.0, 0.0, 0.0], [3.0, 2.0, 4.0]]))
        np.testing.assert_allclose(center, [1.0, 1.0, 2.0])
        np.testing.assert_allclose(extents, [2.0, 1.0, 2.0])

    def test_bounds_of_nothing_are_zero(self) -> None:
        center, extents = geometry.compute_bounds(np.zeros((0, 3)))
        np.testing.assert_array_equal(center, [0.0, 0.0, 0.0])
        np.testing.assert_array_equal(extents, [0.0, 0.0, 0.0])


if __name__ == "__main__":
    unittest.main()
