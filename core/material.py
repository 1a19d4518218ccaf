import math
from typing import Optional

import numpy as np
from PIL import Image
from core.math import Vec3, WHITE


class Texture:
    def __init__(self, pixels: np.ndarray, path: str = None):
        """
        pixels: (height, width, 3) 배열, 0~1 범위의 RGB.
        행 0이 v=0(아래쪽)에 해당한다.
        """
        self.path = path  # 파일에서 읽었다면 경로 저장
        self.pixels = np.asarray(pixels, dtype=np.float64)
        if self.pixels.size == 0:
            self.height, self.width = 0, 0
        else:
            self.height, self.width = self.pixels.shape[:2]

    @classmethod
    def from_file(cls, path: str):
        img = Image.open(path).convert("RGB")
        # PIL 이미지는 위→아래 방향이라 뒤집어서 v축이 위를 향하게 한다
        pixels = np.flipud(np.array(img)).astype(np.float64) / 255.0
        return cls(pixels, path=path)

    @classmethod
    def from_array(cls, pixels):
        return cls(pixels)

    @property
    def is_empty(self) -> bool:
        return self.width == 0 or self.height == 0

    def pixel(self, x: int, y: int) -> Vec3:
        r, g, b = self.pixels[y, x]
        return Vec3(r, g, b)


def texel_coords(u: float, v: float, width: int, height: int):
    """(u, v)를 텍스처 픽셀 인덱스로 변환. 범위를 벗어나면 반복(wrap)된다."""
    return math.floor(u * width) % width, math.floor(v * height) % height


def sample_texture(texture: Optional[Texture], u: float, v: float) -> Vec3:
    # 텍스처가 없으면 흰색 (곱셈 항등원)
    if texture is None or texture.is_empty:
        return WHITE
    x, y = texel_coords(u, v, texture.width, texture.height)
    return texture.pixel(x, y)


class Material:
    def __init__(self,
                 ambient: Vec3 = Vec3(1, 1, 1),
                 diffuse: Vec3 = Vec3(1, 1, 1),
                 specular: Vec3 = Vec3(0, 0, 0),
                 refractive_index: float = 0.0,
                 texture: Texture = None):
        """
        ambient: 환경광 반사 색
        diffuse: 확산 Lambertian 색
        specular: 거울 반사 계수 (재귀 반사 항에 곱해짐)
        refractive_index: 굴절률, 0이면 불투명
        texture: 텍스처 이미지가 있으면 (u, v)로부터 샘플링
        """
        self.ambient = ambient
        self.diffuse = diffuse
        self.specular = specular
        self.refractive_index = float(refractive_index)
        self.texture = texture

    def texture_at(self, u: float, v: float) -> Vec3:
        return sample_texture(self.texture, u, v)


class HitRecord:
    """
    한 번의 최근접 교차 탐색 동안만 쓰이는 교차 정보.
    t가 None이면 아직 교차가 없다는 뜻이다.
    """

    def __init__(self):
        self.t = None
        self.geometry = None
        # 삼각형/메시의 무게중심 좌표, 메시라면 이긴 삼각형 번호
        self.alpha = 0.0
        self.beta = 0.0
        self.gamma = 0.0
        self.triangle = -1

    @property
    def is_hit(self) -> bool:
        return self.t is not None

    def improves(self, t: float) -> bool:
        return self.t is None or t < self.t

    def record(self, t: float, geometry, beta: float = 0.0, gamma: float = 0.0, triangle: int = -1):
        self.t = t
        self.geometry = geometry
        self.alpha = 1.0 - beta - gamma
        self.beta = beta
        self.gamma = gamma
        self.triangle = triangle


class Surface:
    """교차점에서 셰이딩에 필요한 값들 (법선, 텍스처 색, 보간된 재질)"""

    def __init__(self, normal: Vec3, texture: Vec3, ambient: Vec3, diffuse: Vec3,
                 specular: Vec3, refractive_index: float):
        self.normal = normal
        self.texture = texture
        self.ambient = ambient
        self.diffuse = diffuse
        self.specular = specular
        self.refractive_index = refractive_index

    @classmethod
    def from_material(cls, material: Material, normal: Vec3, texture: Vec3):
        return cls(normal, texture, material.ambient, material.diffuse,
                   material.specular, material.refractive_index)
