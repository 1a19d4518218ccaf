import time
from abc import ABC, abstractmethod
from typing import Dict, List, Type

import numpy as np
from PIL import Image

from core.camera import Camera
from core.scene import Scene, RenderSettings


def format_elapsed(seconds: float) -> str:
    minutes = int(seconds // 60)
    return f"{minutes}분 {seconds % 60:.2f}초"


def radiance_to_image(radiance: np.ndarray) -> Image.Image:
    """
    (height, width, 3) 색 배열을 8비트 RGB 이미지로 바꾼다.
    배열의 행 0은 화면 아래쪽이므로 위아래를 뒤집고, [0, 1] 밖의 값은 자른다.
    """
    rgb = np.clip(radiance * 255, 0, 255).astype(np.uint8)
    return Image.fromarray(np.ascontiguousarray(rgb[::-1]), 'RGB')


class BaseRenderer(ABC):
    """
    렌더러 공통 틀. 하위 클래스는 render_radiance만 구현하고
    이미지 변환과 시간 측정은 render에서 한다.
    """

    label = "Base"
    capabilities = ()

    def __init__(self, name: str):
        self.name = name

    def render(self, scene: Scene, camera: Camera, settings: RenderSettings) -> Image.Image:
        """장면을 렌더링하여 PIL Image를 반환 (camera가 None이면 scene.camera 사용)"""
        start_time = time.time()
        print(f"{self.label} 렌더링 시작: {settings.width}x{settings.height}, depth {settings.max_depth}")

        image = radiance_to_image(self.render_radiance(scene, camera, settings))

        print(f"{self.label} 렌더링 완료: {format_elapsed(time.time() - start_time)}")
        return image

    @abstractmethod
    def render_radiance(self, scene: Scene, camera: Camera, settings: RenderSettings) -> np.ndarray:
        """(height, width, 3) float 배열, 행 0이 이미지 맨 아래"""
        pass

    def get_capabilities(self) -> List[str]:
        return list(self.capabilities)

    def get_name(self) -> str:
        return self.name

    def supports(self, feature: str) -> bool:
        return feature in self.capabilities


class RendererFactory:
    """이름으로 렌더러를 찾는 레지스트리. 렌더러 모듈은 import 될 때 스스로 등록한다"""

    _registry: Dict[str, Type[BaseRenderer]] = {}

    @classmethod
    def register(cls, name: str, renderer_class: Type[BaseRenderer]):
        cls._registry[name] = renderer_class

    @classmethod
    def create(cls, name: str, **kwargs) -> BaseRenderer:
        try:
            renderer_class = cls._registry[name]
        except KeyError:
            raise ValueError(f"Unknown renderer: {name} (available: {', '.join(cls.list_available())})") from None
        return renderer_class(**kwargs)

    @classmethod
    def list_available(cls) -> List[str]:
        return sorted(cls._registry)
