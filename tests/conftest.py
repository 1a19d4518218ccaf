"""Pytest configuration and shared fixtures."""

import sys
from pathlib import Path

import pytest

# Add the project root to the path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from core.math import Vec3  # noqa: E402
from core.material import Material  # noqa: E402
from core.geometry import Sphere  # noqa: E402
from core.scene import Scene, PointLight  # noqa: E402
from scene_builders.simple_scene_builder import SimpleSceneBuilder  # noqa: E402


def make_scene(geometries=(), lights=(), background=Vec3(0.2, 0.3, 0.5), ambient=Vec3(0.1, 0.1, 0.1)):
    scene = Scene()
    scene.background_color = background
    scene.ambient_light = ambient
    for geometry in geometries:
        scene.add_geometry(geometry)
    for light in lights:
        scene.add_light(light)
    scene.finalize()
    return scene


@pytest.fixture
def matte():
    return Material(ambient=Vec3(0.5, 0.5, 0.5), diffuse=Vec3(0.8, 0.6, 0.4))


@pytest.fixture
def mirror():
    return Material(ambient=Vec3(0.1, 0.1, 0.1), diffuse=Vec3(0.2, 0.2, 0.2), specular=Vec3(0.9, 0.9, 0.9))


@pytest.fixture
def simple_scene():
    """원점에 반지름 1인 구, 위쪽 점광원"""
    return SimpleSceneBuilder().build_scene()


@pytest.fixture
def lit_sphere_scene(matte):
    return make_scene([Sphere(1.0, matte)], [PointLight(Vec3(0, 5, 0), Vec3(1, 1, 1))])
