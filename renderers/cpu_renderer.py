import numpy as np

from core.camera import Camera
from core.scene import Scene, RenderSettings
from core.raytracer import Raytracer
from renderers.base_renderer import BaseRenderer, RendererFactory


class CPURenderer(BaseRenderer):
    """순수 파이썬 Whitted 레이트레이서. 픽셀마다 Raytracer.trace_pixel을 부른다"""

    label = "CPU"
    capabilities = (
        "ray_tracing",
        "shadows",
        "reflection",
        "refraction",
        "textures",
        "triangle_meshes",
        "point_lights",
    )

    # 진행 상황을 출력할 행 간격
    PRINT_INTERVAL = 50

    def __init__(self):
        super().__init__("cpu_raytracer")

    def render_radiance(self, scene: Scene, camera: Camera, settings: RenderSettings) -> np.ndarray:
        tracer = Raytracer(scene, settings.width, settings.height, camera, settings.max_depth)
        radiance = np.zeros((settings.height, settings.width, 3), dtype=np.float64)

        for y in range(settings.height):
            if y % self.PRINT_INTERVAL == 0:
                print(f"Raytracing (row {y}/{settings.height})...")
            for x in range(settings.width):
                radiance[y, x] = tuple(tracer.trace_pixel(x, y))

        return radiance


RendererFactory.register("cpu_raytracer", CPURenderer)
