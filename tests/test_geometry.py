import itertools
import math

import pytest

from core.math import Vec3, Ray, Quaternion
from core.material import Material, HitRecord
from core.mesh import Mesh, MeshVertex, MeshTriangle
from core.geometry import Sphere, Triangle, TriangleVertex, Model, solve_triangle
from core import shading
from scene_builders.custom_scene_builder import cube_mesh

from conftest import make_scene


def unit_triangle(material=None, **kwargs):
    material = material or Material()
    n = Vec3(0, 0, 1)
    return Triangle([
        TriangleVertex(Vec3(0, 0, 0), n, (0, 0), material),
        TriangleVertex(Vec3(1, 0, 0), n, (1, 0), material),
        TriangleVertex(Vec3(0, 1, 0), n, (0, 1), material),
    ], **kwargs)


@pytest.mark.parametrize("distance,radius", [(5.0, 1.0), (3.0, 2.5), (10.0, 0.5)])
def test_sphere_hit_time_is_distance_minus_radius(distance, radius):
    sphere = Sphere(radius, Material())
    for direction in (Vec3(0, 0, 1), Vec3(1, 1, 1).normalize(), Vec3(-1, 0, 0)):
        ray = Ray(direction * distance, -direction)
        rec = HitRecord()
        assert sphere.intersect(ray, rec)
        assert rec.t == pytest.approx(distance - radius)
        assert rec.geometry is sphere


def test_sphere_behind_ray_and_miss():
    sphere = Sphere(1.0, Material())
    rec = HitRecord()
    assert not sphere.intersect(Ray(Vec3(0, 0, 5), Vec3(0, 0, 1)), rec)
    assert not sphere.intersect(Ray(Vec3(0, 3, 5), Vec3(0, 0, -1)), rec)
    assert rec.t is None
    assert sphere.shadow_intersect(Vec3(0, 0, 1), Vec3(0, 0, 5)) is None


def test_sphere_from_inside_uses_far_root():
    sphere = Sphere(2.0, Material())
    rec = HitRecord()
    assert sphere.intersect(Ray(Vec3(0, 0, 0), Vec3(1, 0, 0)), rec)
    assert rec.t == pytest.approx(2.0)
    assert sphere.shadow_intersect(Vec3(0, 1, 0), Vec3(0, 0.5, 0)) == pytest.approx(1.5)


def test_sphere_respects_world_transform():
    sphere = Sphere(1.0, Material(), position=Vec3(0, 0, -10), scale=Vec3(1, 1, 3))
    rec = HitRecord()
    assert sphere.intersect(Ray(Vec3(0, 0, 0), Vec3(0, 0, -1)), rec)
    # z 방향으로 3배 늘어난 타원체
    assert rec.t == pytest.approx(7.0)

    point = Ray(Vec3(0, 0, 0), Vec3(0, 0, -1)).point_at_parameter(rec.t)
    surface = sphere.surface(rec, point)
    assert surface.normal.z == pytest.approx(1.0)


def test_transform_is_recomputed_on_assignment():
    sphere = Sphere(1.0, Material())
    sphere.position = Vec3(0, 0, -10)
    rec = HitRecord()
    assert sphere.intersect(Ray(Vec3(0, 0, 0), Vec3(0, 0, -1)), rec)
    assert rec.t == pytest.approx(9.0)


def test_update_policy_only_accepts_strictly_closer_hits():
    sphere = Sphere(1.0, Material())
    ray = Ray(Vec3(0, 0, 5), Vec3(0, 0, -1))

    rec = HitRecord()
    rec.t = 3.0
    assert not sphere.intersect(ray, rec)
    assert rec.t == 3.0

    rec.t = 4.0
    assert not sphere.intersect(ray, rec)

    rec.t = 4.5
    assert sphere.intersect(ray, rec)
    assert rec.t == pytest.approx(4.0)


def test_triangle_barycentric_partition_of_unity():
    triangle = unit_triangle()
    for x, y in [(0.2, 0.3), (0.1, 0.1), (0.7, 0.2), (0.05, 0.5)]:
        rec = HitRecord()
        assert triangle.intersect(Ray(Vec3(x, y, 2), Vec3(0, 0, -1)), rec)
        assert rec.t == pytest.approx(2.0)
        assert rec.alpha + rec.beta + rec.gamma == pytest.approx(1.0)
        for weight in (rec.alpha, rec.beta, rec.gamma):
            assert 0.0 <= weight <= 1.0
        assert rec.beta == pytest.approx(x)
        assert rec.gamma == pytest.approx(y)


def test_triangle_outside_and_behind():
    triangle = unit_triangle()
    rec = HitRecord()
    assert not triangle.intersect(Ray(Vec3(0.8, 0.8, 2), Vec3(0, 0, -1)), rec)
    assert not triangle.intersect(Ray(Vec3(0.2, 0.2, 2), Vec3(0, 0, 1)), rec)
    assert triangle.shadow_intersect(Vec3(0, 0, 1), Vec3(0.2, 0.2, 2)) is None
    assert triangle.shadow_intersect(Vec3(0, 0, -1), Vec3(0.2, 0.2, 2)) == pytest.approx(2.0)


def test_parallel_ray_is_a_miss_not_nan():
    triangle = unit_triangle()
    rec = HitRecord()
    assert not triangle.intersect(Ray(Vec3(-1, 0.2, 0), Vec3(1, 0, 0)), rec)
    assert rec.t is None
    assert solve_triangle(Vec3(0, 0, 0), Vec3(1, 0, 0), Vec3(2, 0, 0), Vec3(0.5, 0, 1), Vec3(0, 0, -1)) is None


def test_triangle_needs_three_vertices():
    with pytest.raises(ValueError):
        Triangle([TriangleVertex(Vec3(0, 0, 0), Vec3(0, 0, 1))])


def test_triangle_interpolates_per_vertex_materials():
    red = Material(ambient=Vec3(1, 0, 0), diffuse=Vec3(1, 0, 0), refractive_index=0.0)
    blue = Material(ambient=Vec3(0, 0, 1), diffuse=Vec3(0, 0, 1), refractive_index=1.5)
    n = Vec3(0, 0, 1)
    triangle = Triangle([
        TriangleVertex(Vec3(0, 0, 0), n, (0, 0), red),
        TriangleVertex(Vec3(1, 0, 0), n, (1, 0), blue),
        TriangleVertex(Vec3(0, 1, 0), n, (0, 1), red),
    ])
    rec = HitRecord()
    assert triangle.intersect(Ray(Vec3(0.5, 0.25, 1), Vec3(0, 0, -1)), rec)
    surface = triangle.surface(rec, Vec3(0.5, 0.25, 0))
    assert surface.diffuse.x == pytest.approx(0.5)
    assert surface.diffuse.z == pytest.approx(0.5)
    assert surface.refractive_index == pytest.approx(0.75)
    assert surface.normal.z == pytest.approx(1.0)
    # 텍스처가 없으면 흰색
    assert surface.texture.x == pytest.approx(1.0)


def test_model_remembers_winning_triangle_in_hit_record():
    cube = Model(cube_mesh(), Material())
    rec = HitRecord()
    assert cube.intersect(Ray(Vec3(0.2, 0.3, 5), Vec3(0, 0, -1)), rec)
    assert rec.t == pytest.approx(4.0)
    assert rec.geometry is cube
    assert rec.triangle in (0, 1)  # +z 면

    surface = cube.surface(rec, Vec3(0.2, 0.3, 1))
    assert surface.normal.z == pytest.approx(1.0)
    assert cube.shadow_intersect(Vec3(0, 0, -1), Vec3(0.2, 0.3, 5)) == pytest.approx(4.0)


def test_rotated_model_normal_follows_orientation():
    cube = Model(cube_mesh(), Material(), orientation=Quaternion.from_axis_angle(Vec3(0, 1, 0), math.pi / 2))
    rec = HitRecord()
    assert cube.intersect(Ray(Vec3(5, 0.1, 0.1), Vec3(-1, 0, 0)), rec)
    surface = cube.surface(rec, Vec3(1, 0.1, 0.1))
    assert surface.normal.x == pytest.approx(1.0)


def test_mesh_rejects_bad_indices():
    with pytest.raises(ValueError):
        Mesh([MeshVertex(Vec3(0, 0, 0))], [MeshTriangle(0, 1, 2)])


def test_two_hit_records_do_not_share_state():
    cube = Model(cube_mesh(), Material())
    front = HitRecord()
    side = HitRecord()
    assert cube.intersect(Ray(Vec3(0, 0, 5), Vec3(0, 0, -1)), front)
    assert cube.intersect(Ray(Vec3(5, 0, 0), Vec3(-1, 0, 0)), side)
    assert front.triangle != side.triangle
    assert cube.surface(front, Vec3(0, 0, 1)).normal.z == pytest.approx(1.0)
    assert cube.surface(side, Vec3(1, 0, 0)).normal.x == pytest.approx(1.0)


def _stacked_on_axis(cube_z):
    """광선 (0.1, 0.1, 10) -> -z 위에 놓인 세 물체"""
    triangle = unit_triangle(position=Vec3(0, 0, 5))  # t = 5
    sphere = Sphere(1.0, Material(), position=Vec3(0, 0, 2))  # t 약 7
    cube = Model(cube_mesh(), Material(), position=Vec3(0, 0, cube_z), scale=Vec3(0.5, 0.5, 0.5))
    return triangle, sphere, cube


@pytest.mark.parametrize("cube_z,closest,expected_t", [(-3.0, 0, 5.0), (6.0, 2, 3.5)])
def test_scene_reports_nearest_hit_regardless_of_order(cube_z, closest, expected_t):
    geometries = _stacked_on_axis(cube_z)
    ray = Ray(Vec3(0.1, 0.1, 10), Vec3(0, 0, -1))

    for order in itertools.permutations(geometries):
        scene = make_scene(order)
        rec = HitRecord()
        assert scene.hit(ray, rec)
        assert rec.geometry is geometries[closest]
        assert rec.t == pytest.approx(expected_t)

        found = shading.nearest_hit(scene, ray)
        assert found.geometry is geometries[closest]
        assert found.t == pytest.approx(expected_t)


def test_scene_miss_leaves_record_empty():
    scene = make_scene(_stacked_on_axis(-3.0))
    rec = HitRecord()
    assert not scene.hit(Ray(Vec3(0.1, 0.1, 10), Vec3(0, 0, 1)), rec)
    assert rec.t is None
    assert shading.nearest_hit(scene, Ray(Vec3(5, 5, 10), Vec3(0, 0, -1))) is None
