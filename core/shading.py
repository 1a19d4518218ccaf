"""
Whitted 셰이딩: 지역 조명(환경광 + 확산 + 그림자)과
깊이 제한이 있는 재귀 반사/굴절.
"""
from typing import Optional, Tuple

from core.math import Vec3, Ray, BLACK
from core.material import HitRecord, Surface
from core.scene import Scene, PointLight

# 자기 교차를 피하기 위한 오프셋
EPSILON = 1e-6


def nearest_hit(scene: Scene, ray: Ray) -> Optional[HitRecord]:
    rec = HitRecord()
    if scene.hit(ray, rec):
        return rec
    return None


def attenuation(light: PointLight, dist: float) -> Vec3:
    return light.color * light.attenuation.factor(dist)


def is_shadowed(scene: Scene, light_dir: Vec3, origin: Vec3, dist: float) -> bool:
    # 광원보다 먼 곳의 가림은 무시
    for geometry in scene.geometries:
        t = geometry.shadow_intersect(light_dir, origin)
        if t is not None and t < dist:
            return True
    return False


def diffuse_and_ambient(scene: Scene, surface: Surface, point: Vec3) -> Vec3:
    total = BLACK
    for light in scene.lights:
        to_light = light.position - point
        dist = to_light.length()
        light_dir = to_light.normalize()

        shadow_origin = point + light_dir * EPSILON
        if is_shadowed(scene, light_dir, shadow_origin, light.position.distance(shadow_origin)):
            continue

        total = total + attenuation(light, dist) * max(surface.normal.dot(light_dir), 0.0)

    return surface.texture * (scene.ambient_light * surface.ambient + surface.diffuse * total)


def schlick(nt: float, cosine: float) -> float:
    """
    Schlick 근사. nt는 투과 쪽 매질의 굴절률이고 R0는 공기(1) 기준으로 잡는다.
    cosine은 (방향 · 입사쪽 법선)이므로 음수이고 (1 + cosine)을 쓴다.
    """
    r0 = ((nt - 1.0) / (nt + 1.0)) ** 2
    return r0 + (1.0 - r0) * (1.0 + cosine) ** 5


def refraction(incoming: Vec3, normal: Vec3, index: float, outer_index: float = 1.0) -> Tuple[Vec3, float]:
    """
    굴절 방향과 Fresnel 반사율 R을 돌려준다.
    전반사면 (영벡터, 1.0).
    """
    d = incoming.normalize()
    entering = d.dot(normal) < 0
    if entering:
        oriented, n, nt = normal, outer_index, index
    else:
        oriented, n, nt = -normal, index, outer_index

    direction = d.refract(oriented, n, nt)
    if direction.is_zero():
        return direction, 1.0

    # 들어갈 때는 굴절 방향, 나올 때는 입사 방향으로 코사인을 잰다
    cosine = direction.dot(oriented) if entering else d.dot(oriented)
    return direction, schlick(nt, cosine)


def _trace_branch(scene: Scene, direction: Vec3, point: Vec3, texture: Vec3, depth: int) -> Vec3:
    ray = Ray(point + direction * EPSILON, direction)
    rec = nearest_hit(scene, ray)
    if rec is None:
        return texture * scene.background_color

    hit_point = ray.point_at_parameter(rec.t)
    hit_surface = rec.geometry.surface(rec, hit_point)
    color = diffuse_and_ambient(scene, hit_surface, hit_point)
    if depth > 1 and not hit_surface.specular.is_zero():
        # 재귀 호출
        color = color + hit_surface.specular * specular(scene, hit_surface, ray.direction, hit_point, depth - 1)
    return texture * color


def specular(scene: Scene, surface: Surface, incoming: Vec3, point: Vec3, depth: int) -> Vec3:
    """
    반사 광선(굴절 재질이면 굴절 광선도)을 추적한다.
    depth가 1 이하이면 맞은 물체의 지역 색만 쓰고 더 이상 재귀하지 않는다.
    """
    reflected = incoming.reflect(surface.normal).normalize()
    reflected_color = _trace_branch(scene, reflected, point, surface.texture, depth)
    if surface.refractive_index == 0:
        return reflected_color

    refracted, R = refraction(incoming, surface.normal, surface.refractive_index, scene.refractive_index)
    if refracted.is_zero():
        # 전반사
        return reflected_color

    refracted_color = _trace_branch(scene, refracted, point, surface.texture, depth)
    return reflected_color * R + refracted_color * (1.0 - R)
