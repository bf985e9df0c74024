"""
Unit tests for print_estimate.io.threemf_loader module.

Tests:
- Archive handling (entry lookup, non-ZIP input, encoding)
- XML parsing (namespaces, malformed documents, multiple meshes)
- Index validation and skipped-triangle accounting
- Face normals
"""

import numpy as np
import pytest

from print_estimate.errors import (
    EmptyGeometryError,
    EmptyMesh,
    MalformedXml,
    MissingModelEntry,
    ParseError,
)
from print_estimate.geometry.mesh_stats import calculate_volume
from print_estimate.io.threemf_loader import (
    decode_3mf,
    face_normals,
    parse_model_xml,
    read_model_entry,
)
from tests.conftest import CUBE_FACES, build_3mf, cube_model_xml, cube_vertices, model_xml


class TestReadModelEntry:
    """Tests for archive access."""

    def test_standard_entry(self, cube_3mf_bytes):
        entry, text = read_model_entry(cube_3mf_bytes)
        assert entry == "3D/3dmodel.model"
        assert "<mesh>" in text

    def test_root_entry_fallback(self):
        data = build_3mf(cube_model_xml(), entry="3dmodel.model")
        entry, _ = read_model_entry(data)
        assert entry == "3dmodel.model"

    def test_missing_entry(self):
        data = build_3mf(None)
        with pytest.raises(MissingModelEntry):
            read_model_entry(data)
        assert issubclass(MissingModelEntry, EmptyGeometryError)

    def test_not_a_zip(self):
        with pytest.raises(ParseError, match="ZIP"):
            read_model_entry(b"this is not an archive" * 100)

    def test_invalid_utf8(self):
        data = build_3mf(raw=b"<model>\xff\xfe</model>")
        with pytest.raises(ParseError):
            read_model_entry(data)

    def test_corrupted_payload(self):
        data = bytearray(build_3mf(cube_model_xml()))
        offset = data.find(b"<vertex")
        data[offset + 1:offset + 7] = b"VERTEX"
        with pytest.raises(ParseError, match="Cannot extract 3D/3dmodel.model"):
            read_model_entry(bytes(data))


class TestParseModelXml:
    """Tests for parse_model_xml."""

    def test_cube(self):
        mesh, mesh_count, skipped = parse_model_xml(cube_model_xml())
        assert mesh.triangle_count == 12
        assert mesh_count == 1
        assert skipped == 0
        assert calculate_volume(mesh) == pytest.approx(1.0)

    def test_without_namespace(self):
        mesh, _, _ = parse_model_xml(cube_model_xml(namespace=None))
        assert mesh.triangle_count == 12

    def test_malformed_xml(self):
        with pytest.raises(MalformedXml):
            parse_model_xml("<model><resources><object>")

    def test_multiple_meshes_concatenated(self):
        xml = model_xml([
            (cube_vertices(10.0).tolist(), CUBE_FACES),
            (cube_vertices(10.0, offset=(50, 0, 0)).tolist(), CUBE_FACES),
        ])
        mesh, mesh_count, _ = parse_model_xml(xml)
        assert mesh_count == 2
        assert mesh.triangle_count == 24
        assert calculate_volume(mesh) == pytest.approx(2.0)

    def test_invalid_indices_skipped(self):
        triangles = list(CUBE_FACES) + [(0, 1, 99), (0, None, 2), (-1, 0, 1), ("a", 1, 2)]
        xml = model_xml([(cube_vertices().tolist(), triangles)])
        mesh, _, skipped = parse_model_xml(xml)
        assert mesh.triangle_count == 12
        assert skipped == 4

    def test_all_triangles_invalid(self):
        xml = model_xml([(cube_vertices().tolist(), [(0, 1, 42)])])
        with pytest.raises(EmptyMesh):
            parse_model_xml(xml)

    def test_no_mesh_elements(self):
        with pytest.raises(EmptyMesh):
            parse_model_xml('<model xmlns="x"><resources/></model>')

    def test_missing_coordinate_defaults_to_zero(self):
        xml = (
            "<model><resources><object id='1'><mesh><vertices>"
            "<vertex x='1' y='2'/><vertex x='3' y='0' z='0'/><vertex x='0' y='3' z='0'/>"
            "</vertices><triangles><triangle v1='0' v2='1' v3='2'/></triangles>"
            "</mesh></object></resources></model>"
        )
        mesh, _, _ = parse_model_xml(xml)
        np.testing.assert_allclose(mesh.vertices[0, 0], [1.0, 2.0, 0.0])

    def test_non_numeric_coordinate(self):
        xml = (
            "<model><resources><object id='1'><mesh><vertices>"
            "<vertex x='one' y='0' z='0'/>"
            "</vertices><triangles/></mesh></object></resources></model>"
        )
        with pytest.raises(ParseError):
            parse_model_xml(xml)

    @pytest.mark.parametrize("value", ["nan", "inf", "-Infinity"])
    def test_non_finite_coordinate(self, value):
        vertices = cube_vertices().tolist()
        vertices[5][1] = value
        with pytest.raises(ParseError, match="vertex 5 has a non-finite"):
            parse_model_xml(model_xml([(vertices, CUBE_FACES)]))


class TestFaceNormals:
    """Tests for face_normals."""

    def test_unit_normal(self):
        tri = np.array([[[0, 0, 0], [1, 0, 0], [0, 1, 0]]], dtype=np.float64)
        np.testing.assert_allclose(face_normals(tri), [[0.0, 0.0, 1.0]])

    def test_degenerate_is_zero(self):
        tri = np.array([[[0, 0, 0], [1, 1, 1], [2, 2, 2]]], dtype=np.float64)
        np.testing.assert_allclose(face_normals(tri), [[0.0, 0.0, 0.0]])


class TestDecode3MF:
    """Tests for decode_3mf."""

    def test_cube(self, cube_3mf_bytes):
        result = decode_3mf(cube_3mf_bytes)
        assert result.entry_name == "3D/3dmodel.model"
        assert result.mesh_count == 1
        assert result.skipped_triangles == 0
        assert result.mesh.triangle_count == 12

    def test_normals_replicated(self, cube_3mf_bytes):
        mesh = decode_3mf(cube_3mf_bytes).mesh
        np.testing.assert_allclose(mesh.normals[:, 0], mesh.normals[:, 1])
        np.testing.assert_allclose(mesh.normals[:, 0], mesh.normals[:, 2])
