"""
명령행 진입점.

    python main.py -r numba_raytracer --scene custom -w 800 --height 600 -d 3 -o output.png
"""
import time
import argparse

from core.scene import RenderSettings, DEFAULT_MAX_DEPTH
from scene_builders.custom_scene_builder import CustomSceneBuilder
from scene_builders.simple_scene_builder import SimpleSceneBuilder
from renderers.base_renderer import RendererFactory, format_elapsed

# import 시점에 RendererFactory에 등록된다
import renderers.cpu_renderer  # noqa: F401
import renderers.numba_renderer  # noqa: F401

SCENE_BUILDERS = {
    'custom': CustomSceneBuilder,
    'simple': SimpleSceneBuilder,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Whitted-style recursive ray tracer')
    parser.add_argument('--renderer', '-r', default='numba_raytracer',
                        choices=RendererFactory.list_available(),
                        help='사용할 렌더러')
    parser.add_argument('--scene', default='custom', choices=sorted(SCENE_BUILDERS),
                        help='custom: 거울/유리/텍스처 구와 메시, simple: 구 하나')
    parser.add_argument('--width', '-w', type=int, default=800, help='가로 픽셀 수')
    parser.add_argument('--height', type=int, default=600, help='세로 픽셀 수')
    parser.add_argument('--depth', '-d', type=int, default=DEFAULT_MAX_DEPTH,
                        help='반사/굴절 재귀 깊이 (1이면 재귀 없음)')
    parser.add_argument('--output', '-o', default='output.png', help='저장할 이미지 경로')
    return parser


def render(scene_name: str, renderer_name: str, settings: RenderSettings):
    scene = SCENE_BUILDERS[scene_name]().build_scene()
    renderer = RendererFactory.create(renderer_name)
    print(f"{scene_name} 장면: 물체 {scene.num_geometries()}개, 조명 {scene.num_lights()}개 / "
          f"렌더러 {renderer.get_name()} ({', '.join(renderer.get_capabilities())})")
    return renderer.render(scene, scene.camera, settings)


def main(argv=None):
    args = build_parser().parse_args(argv)
    try:
        settings = RenderSettings(width=args.width, height=args.height, max_depth=args.depth)
    except ValueError as e:
        raise SystemExit(f"잘못된 렌더링 설정: {e}")

    started = time.time()
    image = render(args.scene, args.renderer, settings)
    elapsed = time.time() - started

    image.save(args.output)
    print(f"이미지 저장: {args.output}")
    print(f"총 실행 시간: {format_elapsed(elapsed)}, "
          f"{settings.width * settings.height / max(elapsed, 1e-9) / 1e3:.1f}K primary rays/sec")
    return image


if __name__ == "__main__":
    main()
