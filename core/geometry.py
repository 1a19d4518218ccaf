import math
from abc import ABC, abstractmethod
from typing import Optional, Sequence, Tuple

from core.math import Vec3, Ray, Quaternion, Transform
from core.material import Material, HitRecord, Surface
from core.mesh import Mesh

# 이보다 작은 행렬식은 특이(광선이 삼각형 평면과 평행)로 본다
DET_EPSILON = 1e-12


def solve_triangle(a: Vec3, b: Vec3, c: Vec3, e: Vec3, d: Vec3) -> Optional[Tuple[float, float, float]]:
    """
    e + t*d = a + beta*(b - a) + gamma*(c - a) 를 크래머 공식으로 푼다.
    유효한 교차면 (t, beta, gamma), 아니면 None.
    """
    A = a.x - b.x
    B = a.y - b.y
    C = a.z - b.z

    D = a.x - c.x
    E = a.y - c.y
    F = a.z - c.z

    G = d.x
    H = d.y
    I = d.z

    J = a.x - e.x
    K = a.y - e.y
    L = a.z - e.z

    EIHF = E * I - H * F
    GFDI = G * F - D * I
    DHEG = D * H - E * G

    M = A * EIHF + B * GFDI + C * DHEG
    if abs(M) < DET_EPSILON:
        return None

    AKJB = A * K - J * B
    JCAL = J * C - A * L
    BLKC = B * L - K * C

    beta = (J * EIHF + K * GFDI + L * DHEG) / M
    gamma = (I * AKJB + H * JCAL + G * BLKC) / M
    t = -(F * AKJB + E * JCAL + D * BLKC) / M

    if t >= 0.0 and beta >= 0.0 and gamma >= 0.0 and beta + gamma <= 1.0:
        return t, beta, gamma
    return None


class Geometry(ABC):
    """
    월드 변환 적용 순서:
    1. Scale
    2. Orientation
    3. Position
    transform(역변환, 법선 행렬)은 위 세 값이 바뀔 때마다 다시 계산된다.
    """

    def __init__(self, position: Vec3 = None, orientation: Quaternion = None, scale: Vec3 = None):
        self._position = position if position is not None else Vec3(0, 0, 0)
        self._orientation = orientation if orientation is not None else Quaternion()
        self._scale = scale if scale is not None else Vec3(1, 1, 1)
        self.update_transform()

    @property
    def position(self) -> Vec3:
        return self._position

    @position.setter
    def position(self, value: Vec3):
        self._position = value
        self.update_transform()

    @property
    def orientation(self) -> Quaternion:
        return self._orientation

    @orientation.setter
    def orientation(self, value: Quaternion):
        self._orientation = value
        self.update_transform()

    @property
    def scale(self) -> Vec3:
        return self._scale

    @scale.setter
    def scale(self, value: Vec3):
        self._scale = value
        self.update_transform()

    def update_transform(self):
        self.transform = Transform(self._position, self._orientation, self._scale)

    def local_ray(self, origin: Vec3, direction: Vec3):
        # 방향은 정규화하지 않는다: t가 월드 공간과 같은 값을 유지해야 함
        return self.transform.point_to_local(origin), self.transform.vector_to_local(direction)

    @abstractmethod
    def intersect(self, ray: Ray, rec: HitRecord) -> bool:
        """rec.t 보다 가까운 교차를 찾으면 rec를 갱신하고 True"""
        pass

    @abstractmethod
    def shadow_intersect(self, direction: Vec3, origin: Vec3) -> Optional[float]:
        pass

    @abstractmethod
    def surface(self, rec: HitRecord, point: Vec3) -> Surface:
        pass


class Sphere(Geometry):
    def __init__(self, radius: float = 1.0, material: Material = None, **kwargs):
        self.radius = float(radius)
        self.material = material
        super().__init__(**kwargs)

    def _time(self, e: Vec3, d: Vec3) -> Optional[float]:
        # |e + t*d|^2 = R^2, 물체 공간에서 중심은 원점
        dd = d.dot(d)
        if dd == 0:
            return None
        de = d.dot(e)
        discriminant = de * de - dd * (e.dot(e) - self.radius * self.radius)
        if discriminant < 0:
            return None

        sqrt_d = math.sqrt(discriminant)
        t1 = (-de + sqrt_d) / dd
        t2 = (-de - sqrt_d) / dd
        if t1 <= 0.0:
            return None  # 구 전체가 광선 뒤에 있음
        if t2 <= 0.0:
            return t1  # 광선 시작점이 구 안쪽
        return t2

    def intersect(self, ray: Ray, rec: HitRecord) -> bool:
        t = self._time(*self.local_ray(ray.origin, ray.direction))
        if t is None or not rec.improves(t):
            return False
        rec.record(t, self)
        return True

    def shadow_intersect(self, direction: Vec3, origin: Vec3) -> Optional[float]:
        return self._time(*self.local_ray(origin, direction))

    def normal_of(self, point: Vec3) -> Vec3:
        local = self.transform.point_to_local(point)
        if self.radius > 0:
            local = local / self.radius
        return self.transform.normal_to_world(local)

    def texture_of(self, normal: Vec3) -> Vec3:
        theta = math.acos(max(-1.0, min(1.0, normal.y)))
        phi = math.atan2(normal.x, normal.z)
        u = phi / (2.0 * math.pi)
        v = (math.pi - theta) / math.pi
        return self.material.texture_at(u, v)

    def surface(self, rec: HitRecord, point: Vec3) -> Surface:
        normal = self.normal_of(point)
        return Surface.from_material(self.material, normal, self.texture_of(normal))


class TriangleVertex:
    def __init__(self, position: Vec3, normal: Vec3, tex_coord: Tuple[float, float] = (0.0, 0.0),
                 material: Material = None):
        self.position = position
        self.normal = normal
        self.tex_coord = (float(tex_coord[0]), float(tex_coord[1]))
        self.material = material


class Triangle(Geometry):
    def __init__(self, vertices: Sequence[TriangleVertex], **kwargs):
        if len(vertices) != 3:
            raise ValueError(f"Triangle needs exactly 3 vertices, got {len(vertices)}")
        self.vertices = tuple(vertices)
        super().__init__(**kwargs)

    def _solve(self, origin: Vec3, direction: Vec3):
        e, d = self.local_ray(origin, direction)
        a, b, c = (v.position for v in self.vertices)
        return solve_triangle(a, b, c, e, d)

    def intersect(self, ray: Ray, rec: HitRecord) -> bool:
        result = self._solve(ray.origin, ray.direction)
        if result is None or not rec.improves(result[0]):
            return False
        t, beta, gamma = result
        rec.record(t, self, beta, gamma)
        return True

    def shadow_intersect(self, direction: Vec3, origin: Vec3) -> Optional[float]:
        result = self._solve(origin, direction)
        return None if result is None else result[0]

    def surface(self, rec: HitRecord, point: Vec3) -> Surface:
        A, B, C = self.vertices
        w = (rec.alpha, rec.beta, rec.gamma)

        normal = self.transform.normal_to_world(A.normal * w[0] + B.normal * w[1] + C.normal * w[2])
        u = w[0] * A.tex_coord[0] + w[1] * B.tex_coord[0] + w[2] * C.tex_coord[0]
        v = w[0] * A.tex_coord[1] + w[1] * B.tex_coord[1] + w[2] * C.tex_coord[1]

        # 정점마다 재질이 다를 수 있으므로 각 재질의 값을 무게중심 좌표로 섞는다
        texture = Vec3(0, 0, 0)
        ambient = Vec3(0, 0, 0)
        diffuse = Vec3(0, 0, 0)
        specular = Vec3(0, 0, 0)
        refractive_index = 0.0
        for weight, vertex in zip(w, self.vertices):
            mat = vertex.material
            texture = texture + mat.texture_at(u, v) * weight
            ambient = ambient + mat.ambient * weight
            diffuse = diffuse + mat.diffuse * weight
            specular = specular + mat.specular * weight
            refractive_index += mat.refractive_index * weight

        return Surface(normal, texture, ambient, diffuse, specular, refractive_index)


class Model(Geometry):
    """하나의 재질을 공유하는 삼각형 메시"""

    def __init__(self, mesh: Mesh, material: Material = None, **kwargs):
        self.mesh = mesh
        self.material = material
        self._faces = [tuple(v.position for v in mesh.corners(i)) for i in range(mesh.num_triangles())]
        super().__init__(**kwargs)

    def intersect(self, ray: Ray, rec: HitRecord) -> bool:
        e, d = self.local_ray(ray.origin, ray.direction)
        improved = False
        for i, (a, b, c) in enumerate(self._faces):
            result = solve_triangle(a, b, c, e, d)
            if result is not None and rec.improves(result[0]):
                t, beta, gamma = result
                rec.record(t, self, beta, gamma, triangle=i)
                improved = True
        return improved

    def shadow_intersect(self, direction: Vec3, origin: Vec3) -> Optional[float]:
        e, d = self.local_ray(origin, direction)
        min_time = None
        for a, b, c in self._faces:
            result = solve_triangle(a, b, c, e, d)
            if result is not None and (min_time is None or result[0] < min_time):
                min_time = result[0]
        return min_time

    def surface(self, rec: HitRecord, point: Vec3) -> Surface:
        A, B, C = self.mesh.corners(rec.triangle)
        normal = self.transform.normal_to_world(A.normal * rec.alpha + B.normal * rec.beta + C.normal * rec.gamma)
        u = rec.alpha * A.tex_coord[0] + rec.beta * B.tex_coord[0] + rec.gamma * C.tex_coord[0]
        v = rec.alpha * A.tex_coord[1] + rec.beta * B.tex_coord[1] + rec.gamma * C.tex_coord[1]
        return Surface.from_material(self.material, normal, self.material.texture_at(u, v))
