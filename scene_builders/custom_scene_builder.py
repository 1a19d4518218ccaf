import math
import numpy as np
from core.math import Vec3, Quaternion
from core.material import Material, Texture
from core.mesh import Mesh, MeshVertex, MeshTriangle
from core.geometry import Sphere, Triangle, TriangleVertex, Model
from core.scene import Scene, PointLight, Attenuation
from core.camera import Camera


def checker_texture(size: int = 8, color_a=(0.9, 0.9, 0.9), color_b=(0.15, 0.15, 0.15)) -> Texture:
    """size x size 체커보드 텍스처"""
    ys, xs = np.indices((size, size))
    mask = ((xs + ys) % 2 == 0)[..., None]
    pixels = np.where(mask, np.array(color_a), np.array(color_b))
    return Texture.from_array(pixels)


def cube_mesh() -> Mesh:
    """한 변이 2인 정육면체. 면마다 4개의 정점(면 법선, UV)을 따로 둔다"""
    faces = [
        # (법선, 면 위의 u축, v축)
        (Vec3(0, 0, 1), Vec3(1, 0, 0), Vec3(0, 1, 0)),
        (Vec3(0, 0, -1), Vec3(-1, 0, 0), Vec3(0, 1, 0)),
        (Vec3(1, 0, 0), Vec3(0, 0, -1), Vec3(0, 1, 0)),
        (Vec3(-1, 0, 0), Vec3(0, 0, 1), Vec3(0, 1, 0)),
        (Vec3(0, 1, 0), Vec3(1, 0, 0), Vec3(0, 0, -1)),
        (Vec3(0, -1, 0), Vec3(1, 0, 0), Vec3(0, 0, 1)),
    ]
    vertices = []
    triangles = []
    for normal, u_axis, v_axis in faces:
        base = len(vertices)
        for du, dv in ((-1, -1), (1, -1), (1, 1), (-1, 1)):
            position = normal + u_axis * du + v_axis * dv
            vertices.append(MeshVertex(position, normal, ((du + 1) / 2.0, (dv + 1) / 2.0)))
        triangles.append(MeshTriangle(base, base + 1, base + 2))
        triangles.append(MeshTriangle(base, base + 2, base + 3))
    return Mesh(vertices, triangles)


class CustomSceneBuilder:
    """체커 바닥 위에 거울 구, 유리 구, 텍스처 구, 정육면체 메시를 놓은 장면"""

    def __init__(self):
        self.floor_size = 10.0  # 바닥 한 변의 절반
        self.floor_height = -1.0
        self.floor_tiles = 4.0  # 바닥 텍스처 반복 횟수
        self.glass_index = 1.5  # 유리의 굴절률

    def build_scene(self) -> Scene:
        """완성된 장면을 만들고 finalize까지 한다"""
        scene = Scene()
        scene.background_color = Vec3(0.1, 0.1, 0.2)
        scene.ambient_light = Vec3(0.2, 0.2, 0.2)
        scene.refractive_index = 1.0
        scene.camera = self.create_camera()

        materials = self._create_materials(scene)
        self._create_floor(scene, materials)
        self._create_spheres(scene, materials)
        self._create_models(scene, materials)
        self._create_lighting(scene)

        scene.finalize()
        return scene

    def create_camera(self) -> Camera:
        lookfrom = Vec3(0, 1.0, 6.0)
        lookat = Vec3(0, 0, 0)
        vup = Vec3(0, 1, 0)
        return Camera.look_at(lookfrom, lookat, vup, vfov=45.0, near_clip=1.0)

    def _create_materials(self, scene: Scene) -> dict:
        materials = {
            'floor_light': Material(
                ambient=Vec3(0.8, 0.8, 0.8), diffuse=Vec3(0.8, 0.8, 0.8),
                specular=Vec3(0.1, 0.1, 0.1), texture=checker_texture()
            ),
            # 바닥의 반대쪽 모서리는 푸른빛 (정점별 재질 보간)
            'floor_tint': Material(
                ambient=Vec3(0.4, 0.5, 0.9), diffuse=Vec3(0.4, 0.5, 0.9),
                specular=Vec3(0.1, 0.1, 0.1), texture=checker_texture()
            ),
            'mirror': Material(
                ambient=Vec3(0.1, 0.1, 0.1), diffuse=Vec3(0.1, 0.1, 0.1),
                specular=Vec3(0.8, 0.8, 0.8)
            ),
            'glass': Material(
                ambient=Vec3(0.0, 0.0, 0.0), diffuse=Vec3(0.0, 0.0, 0.0),
                specular=Vec3(1.0, 1.0, 1.0), refractive_index=self.glass_index
            ),
            'striped': Material(
                ambient=Vec3(1.0, 1.0, 1.0), diffuse=Vec3(1.0, 1.0, 1.0),
                specular=Vec3(0.0, 0.0, 0.0),
                texture=checker_texture(16, (1.0, 0.6, 0.1), (0.2, 0.1, 0.6))
            ),
            'cube': Material(
                ambient=Vec3(0.8, 0.2, 0.2), diffuse=Vec3(0.8, 0.2, 0.2),
                specular=Vec3(0.2, 0.2, 0.2)
            ),
        }
        for mat in materials.values():
            scene.add_material(mat)
        return materials

    def _create_floor(self, scene: Scene, materials: dict):
        """바닥: 삼각형 2개"""
        s = self.floor_size
        n = self.floor_tiles
        up = Vec3(0, 1, 0)
        light, tint = materials['floor_light'], materials['floor_tint']

        corners = [
            TriangleVertex(Vec3(-s, 0, s), up, (0, 0), light),
            TriangleVertex(Vec3(s, 0, s), up, (n, 0), light),
            TriangleVertex(Vec3(s, 0, -s), up, (n, n), tint),
            TriangleVertex(Vec3(-s, 0, -s), up, (0, n), tint),
        ]
        floor_position = Vec3(0, self.floor_height, 0)
        scene.add_geometry(Triangle([corners[0], corners[1], corners[2]], position=floor_position))
        scene.add_geometry(Triangle([corners[0], corners[2], corners[3]], position=floor_position))

    def _create_spheres(self, scene: Scene, materials: dict):
        scene.add_geometry(Sphere(1.0, materials['mirror'], position=Vec3(-1.6, 0.0, -1.0)))
        scene.add_geometry(Sphere(0.7, materials['glass'], position=Vec3(1.0, -0.3, 1.0)))
        # 비균일 스케일: 납작한 타원체
        scene.add_geometry(Sphere(0.6, materials['striped'],
                                  position=Vec3(1.8, -0.5, -1.5),
                                  orientation=Quaternion.from_axis_angle(Vec3(0, 1, 0), math.radians(30)),
                                  scale=Vec3(1.0, 0.8, 1.0)))

    def _create_models(self, scene: Scene, materials: dict):
        mesh = cube_mesh()
        scene.add_mesh(mesh)
        scene.add_geometry(Model(mesh, materials['cube'],
                                 position=Vec3(0.0, -0.6, -3.0),
                                 orientation=Quaternion.from_axis_angle(Vec3(0, 1, 0), math.radians(35)),
                                 scale=Vec3(0.4, 0.4, 0.4)))

    def _create_lighting(self, scene: Scene):
        scene.add_light(PointLight(Vec3(-4.0, 6.0, 4.0), Vec3(0.8, 0.8, 0.8),
                                   Attenuation(1.0, 0.0, 0.0)))
        scene.add_light(PointLight(Vec3(4.0, 4.0, 2.0), Vec3(0.6, 0.5, 0.4),
                                   Attenuation(1.0, 0.05, 0.01)))
