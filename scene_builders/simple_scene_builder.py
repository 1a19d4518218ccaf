from core.math import Vec3
from core.material import Material
from core.geometry import Sphere
from core.scene import Scene, PointLight
from core.camera import Camera


class SimpleSceneBuilder:
    """원점에 반지름 1인 불투명 구 하나, 위쪽에 점광원 하나"""

    def __init__(self, distance: float = 5.0):
        self.distance = distance

    def build_scene(self) -> Scene:
        scene = Scene()
        scene.background_color = Vec3(0.2, 0.3, 0.5)
        scene.ambient_light = Vec3(0.1, 0.1, 0.1)
        scene.camera = self.create_camera()

        material = Material(ambient=Vec3(1.0, 0.2, 0.2), diffuse=Vec3(1.0, 0.2, 0.2))
        scene.add_material(material)
        scene.add_geometry(Sphere(1.0, material))
        scene.add_light(PointLight(Vec3(0, 5, 0), Vec3(1, 1, 1)))

        scene.finalize()
        return scene

    def create_camera(self) -> Camera:
        return Camera.look_at(Vec3(0, 0, self.distance), Vec3(0, 0, 0), Vec3(0, 1, 0), vfov=60.0)
