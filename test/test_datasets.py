import numpy as np
import pytest

from plane_seg_ri.datasets import (
    TEST_CASES,
    check_extension,
    get_test_case,
    load_labeled_cloud,
    load_test_case,
)
from plane_seg_ri.errors import InvalidInput, UnsupportedFileFormat


def test_all_cases_are_known():
    assert sorted(TEST_CASES) == [0, 1, 2, 3, 4, 5]
    for case in TEST_CASES.values():
        check_extension(case.path)
        assert len(case.origin) == 3
        assert len(case.look_direction) == 3


def test_case_zero_overrides():
    case = get_test_case(0)
    assert case.path.endswith('tilted-steps.pcd')
    np.testing.assert_allclose(case.origin, [0.248091, 0.012443, 1.806473])
    np.testing.assert_allclose(case.look_direction, [0.837001, 0.019831, -0.546842])


@pytest.mark.parametrize("selector", [6, -1, "abc", None])
def test_unknown_case(selector):
    with pytest.raises(InvalidInput):
        get_test_case(selector)


@pytest.mark.parametrize("path", ["cloud.xyz", "cloud", "cloud.pcd.bak", "mesh.obj"])
def test_unsupported_extension(path):
    with pytest.raises(UnsupportedFileFormat):
        load_labeled_cloud(path)


def test_extension_is_case_insensitive():
    assert check_extension("MAP.PLY") == ".ply"


def test_missing_file(tmp_path):
    with pytest.raises(InvalidInput):
        load_labeled_cloud(str(tmp_path / "missing.pcd"))


def test_missing_test_case_file(tmp_path):
    with pytest.raises(InvalidInput):
        load_test_case(4, str(tmp_path))


def test_load_pcd(tmp_path):
    o3d = pytest.importorskip("open3d")
    points = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.5]])
    path = tmp_path / "terrain" / "terrain_med.pcd"
    path.parent.mkdir()
    pcd = o3d.geometry.PointCloud()
    pcd.points = o3d.utility.Vector3dVector(points)
    assert o3d.io.write_point_cloud(str(path), pcd)

    cloud, origin, look, case = load_test_case(1, str(tmp_path))
    np.testing.assert_allclose(cloud.points, points, atol=1e-6)
    assert list(cloud.labels) == [0, 0, 0]
    np.testing.assert_allclose(origin, case.origin)
    np.testing.assert_allclose(look, case.look_direction)
