from typing import List
from dataclasses import dataclass, field
from core.math import Vec3, Ray
from core.material import HitRecord, Material
from core.mesh import Mesh
from core.geometry import Geometry
from core.camera import Camera

DEFAULT_MAX_DEPTH = 3


@dataclass
class RenderSettings:
    width: int = 800
    height: int = 600
    max_depth: int = DEFAULT_MAX_DEPTH

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"image size must be positive, got {self.width}x{self.height}")
        if self.max_depth < 1:
            raise ValueError(f"max_depth must be at least 1, got {self.max_depth}")


@dataclass
class Attenuation:
    constant: float = 1.0
    linear: float = 0.0
    quadratic: float = 0.0

    def factor(self, dist: float) -> float:
        # 1 / (c0 + c1*d + c2*d^2)
        return 1.0 / (self.constant + self.linear * dist + self.quadratic * dist * dist)


@dataclass
class PointLight:
    position: Vec3
    color: Vec3 = field(default_factory=lambda: Vec3(1, 1, 1))  # diffuse, specular 공용
    attenuation: Attenuation = field(default_factory=Attenuation)


class Scene:
    def __init__(self):
        self.geometries: List[Geometry] = []
        self.materials: List[Material] = []
        self.meshes: List[Mesh] = []
        self.lights: List[PointLight] = []
        self.camera = Camera()
        self.background_color = Vec3(0.0, 0.0, 0.0)
        self.ambient_light = Vec3(0.0, 0.0, 0.0)
        # 주변 매질(공기)의 굴절률
        self.refractive_index = 1.0
        self._finalized = False

    def _check_mutable(self):
        if self._finalized:
            raise RuntimeError("scene is finalized; call reset() before adding objects")

    def add_geometry(self, geometry: Geometry):
        self._check_mutable()
        self.geometries.append(geometry)

    def add_material(self, material: Material):
        self._check_mutable()
        self.materials.append(material)

    def add_mesh(self, mesh: Mesh):
        self._check_mutable()
        self.meshes.append(mesh)

    def add_light(self, light: PointLight):
        self._check_mutable()
        self.lights.append(light)

    def num_geometries(self) -> int:
        return len(self.geometries)

    def num_lights(self) -> int:
        return len(self.lights)

    def num_materials(self) -> int:
        return len(self.materials)

    def num_meshes(self) -> int:
        return len(self.meshes)

    @property
    def is_finalized(self) -> bool:
        return self._finalized

    def finalize(self):
        """씬 조립이 끝난 뒤 한 번 호출: 변환 행렬을 갱신하고 씬을 고정한다"""
        for geometry in self.geometries:
            geometry.update_transform()
        self._finalized = True

    def reset(self):
        self.geometries = []
        self.materials = []
        self.meshes = []
        self.lights = []
        self._finalized = False

    def hit(self, ray: Ray, rec: HitRecord) -> bool:
        # 모든 물체를 검사해 가장 가까운 교차를 rec에 남긴다
        hit_anything = False
        for geometry in self.geometries:
            if geometry.intersect(ray, rec):
                hit_anything = True
        return hit_anything
