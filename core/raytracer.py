import math
from core.math import Vec3, Ray
from core.camera import Camera
from core.scene import Scene, DEFAULT_MAX_DEPTH
from core import shading


class Raytracer:
    def __init__(self, scene: Scene, width: int, height: int, camera: Camera = None,
                 max_depth: int = DEFAULT_MAX_DEPTH):
        """
        카메라로부터 정규직교 기저(u, v, w)와 near 평면에서의 화면 범위를 계산한다.
        씬이 아직 finalize 되지 않았다면 여기서 한다.
        """
        if not scene.is_finalized:
            scene.finalize()

        self.scene = scene
        self.width = width
        self.height = height
        self.max_depth = max_depth
        self.camera = camera if camera is not None else scene.camera

        self.w = self.camera.direction.normalize()
        u = self.camera.up.cross(self.w).normalize()
        self.v = self.w.cross(u)
        self.u = -u
        self.eye = self.camera.position

        self.near_clip = self.camera.near_clip
        self.top = math.tan(self.camera.get_fov_radians() / 2.0) * abs(self.near_clip)
        self.right = (width / height) * self.top
        self.bottom = -self.top
        self.left = -self.right

    def ray_for_pixel(self, x: int, y: int) -> Ray:
        # (x, y)는 왼쪽 아래 기준, 픽셀 중심을 샘플링
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise ValueError(f"pixel ({x}, {y}) outside {self.width}x{self.height} image")
        u_s = self.left + (self.right - self.left) * (x + 0.5) / self.width
        v_s = self.bottom + (self.top - self.bottom) * (y + 0.5) / self.height
        direction = self.u * u_s + self.v * v_s + self.w * self.near_clip
        return Ray(self.eye, direction)

    def trace(self, ray: Ray) -> Vec3:
        rec = shading.nearest_hit(self.scene, ray)
        if rec is None:
            return self.scene.background_color

        point = ray.point_at_parameter(rec.t)
        surface = rec.geometry.surface(rec, point)
        if surface.refractive_index != 0:
            # 투명 물체는 재귀 항만 보여준다
            return shading.specular(self.scene, surface, ray.direction, point, self.max_depth)

        local = shading.diffuse_and_ambient(self.scene, surface, point)
        if surface.specular.is_zero():
            return local
        return local + surface.specular * shading.specular(self.scene, surface, ray.direction, point, self.max_depth)

    def trace_pixel(self, x: int, y: int) -> Vec3:
        return self.trace(self.ray_for_pixel(x, y))
