import math
from core.math import Vec3


class Camera:
    def __init__(self,
                 position: Vec3 = None,
                 direction: Vec3 = None,
                 up: Vec3 = None,
                 fov: float = math.pi / 3,   # 수직 FOV(rad)
                 near_clip: float = 1.0):
        self.position = position if position is not None else Vec3(0, 0, 0)
        self.direction = (direction if direction is not None else Vec3(0, 0, -1)).normalize()
        self.up = (up if up is not None else Vec3(0, 1, 0)).normalize()
        self.fov = fov
        self.near_clip = near_clip

    @classmethod
    def look_at(cls,
                lookfrom: Vec3,
                lookat: Vec3,
                vup: Vec3,
                vfov: float,        # 수직 FOV(deg)
                near_clip: float = 1.0):
        return cls(lookfrom, lookat - lookfrom, vup, math.radians(vfov), near_clip)

    def get_fov_radians(self) -> float:
        return self.fov

    def get_fov_degrees(self) -> float:
        return math.degrees(self.fov)
