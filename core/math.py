import math
import numpy as np


class Vec3:
    def __init__(self, x=0.0, y=0.0, z=0.0):
        self.x = float(x)
        self.y = float(y)
        self.z = float(z)

    def __add__(self, other):
        return Vec3(self.x + other.x,
                    self.y + other.y,
                    self.z + other.z)

    def __sub__(self, other):
        return Vec3(self.x - other.x,
                    self.y - other.y,
                    self.z - other.z)

    def __mul__(self, t):
        # 스칼라 곱 또는 원소별 곱(Hadamard)
        if isinstance(t, Vec3):
            return Vec3(self.x * t.x,
                        self.y * t.y,
                        self.z * t.z)
        return Vec3(self.x * t, self.y * t, self.z * t)

    __rmul__ = __mul__

    def __truediv__(self, t):
        return Vec3(self.x / t, self.y / t, self.z / t)

    def __neg__(self):
        return Vec3(-self.x, -self.y, -self.z)

    def __eq__(self, other):
        if not isinstance(other, Vec3):
            return NotImplemented
        return self.x == other.x and self.y == other.y and self.z == other.z

    def __iter__(self):
        yield self.x
        yield self.y
        yield self.z

    def dot(self, other):
        return self.x * other.x + self.y * other.y + self.z * other.z

    def cross(self, other):
        return Vec3(
            self.y * other.z - self.z * other.y,
            self.z * other.x - self.x * other.z,
            self.x * other.y - self.y * other.x
        )

    def length(self):
        return math.sqrt(self.x * self.x + self.y * self.y + self.z * self.z)

    def distance(self, other):
        return (self - other).length()

    def normalize(self):
        l = self.length()
        if l == 0:
            return Vec3(0, 0, 0)
        return self / l

    def is_zero(self):
        return self.x == 0.0 and self.y == 0.0 and self.z == 0.0

    def reflect(self, normal):
        # 반사 벡터: r = v - 2 * dot(v, n) * n
        return self - normal * (2 * self.dot(normal))

    def refract(self, normal, n, nt):
        """
        스넬의 법칙 (벡터 형태). normal은 입사 방향의 반대편을 향해야 한다.
        n: 입사 쪽 매질의 굴절률, nt: 투과 쪽 매질의 굴절률
        전반사면 영벡터를 돌려준다.
        """
        d = self.normalize()
        dn = d.dot(normal)
        discr = 1.0 - (n * n * (1.0 - dn * dn)) / (nt * nt)
        if discr < 0:
            return Vec3(0, 0, 0)
        first = (d - normal * dn) * (n / nt)
        return (first - normal * math.sqrt(discr)).normalize()

    def __repr__(self):
        return f"Vec3({self.x:.3f}, {self.y:.3f}, {self.z:.3f})"


BLACK = Vec3(0, 0, 0)
WHITE = Vec3(1, 1, 1)


class Ray:
    def __init__(self, origin: Vec3, direction: Vec3):
        self.origin = origin
        self.direction = direction.normalize()

    def point_at_parameter(self, t):
        return self.origin + self.direction * t


class Quaternion:
    """단위 쿼터니언 (w, x, y, z). 물체의 월드 방향을 나타낸다."""

    def __init__(self, w=1.0, x=0.0, y=0.0, z=0.0):
        self.w = float(w)
        self.x = float(x)
        self.y = float(y)
        self.z = float(z)

    @classmethod
    def from_axis_angle(cls, axis: Vec3, angle: float):
        # angle 은 라디안
        axis = axis.normalize()
        s = math.sin(angle / 2.0)
        return cls(math.cos(angle / 2.0), axis.x * s, axis.y * s, axis.z * s)

    def norm(self):
        return math.sqrt(self.w * self.w + self.x * self.x + self.y * self.y + self.z * self.z)

    def normalize(self):
        l = self.norm()
        if l == 0:
            return Quaternion()
        return Quaternion(self.w / l, self.x / l, self.y / l, self.z / l)

    def to_matrix(self) -> np.ndarray:
        """3x3 회전 행렬"""
        q = self.normalize()
        w, x, y, z = q.w, q.x, q.y, q.z
        return np.array([
            [1 - 2 * (y * y + z * z), 2 * (x * y - w * z), 2 * (x * z + w * y)],
            [2 * (x * y + w * z), 1 - 2 * (x * x + z * z), 2 * (y * z - w * x)],
            [2 * (x * z - w * y), 2 * (y * z + w * x), 1 - 2 * (x * x + y * y)],
        ], dtype=np.float64)

    def __repr__(self):
        return f"Quaternion({self.w:.3f}, {self.x:.3f}, {self.y:.3f}, {self.z:.3f})"


def make_transformation_matrix(position: Vec3, orientation: Quaternion, scale: Vec3) -> np.ndarray:
    """월드 변환 행렬. 적용 순서: 스케일 -> 회전 -> 이동"""
    m = np.identity(4, dtype=np.float64)
    m[:3, :3] = orientation.to_matrix() @ np.diag([scale.x, scale.y, scale.z])
    m[:3, 3] = [position.x, position.y, position.z]
    return m


def make_inverse_transformation_matrix(position: Vec3, orientation: Quaternion, scale: Vec3) -> np.ndarray:
    return np.linalg.inv(make_transformation_matrix(position, orientation, scale))


def make_normal_matrix(transform: np.ndarray) -> np.ndarray:
    # 비균일 스케일에서도 법선이 수직을 유지하도록 선형부의 역행렬의 전치를 쓴다
    return np.linalg.inv(transform[:3, :3]).T


class Transform:
    """
    물체 공간 <-> 월드 공간 변환에 필요한 파생 데이터.
    inverse: 월드 -> 물체 (4x4 아핀), normal: 물체 법선 -> 월드 법선 (3x3)
    매 광선마다 numpy 스칼라 연산을 피하려고 파이썬 리스트로도 보관한다.
    """

    def __init__(self, position: Vec3, orientation: Quaternion, scale: Vec3):
        world = make_transformation_matrix(position, orientation, scale)
        self.inverse = np.linalg.inv(world)
        self.normal = make_normal_matrix(world)
        self._inv = self.inverse.tolist()
        self._nrm = self.normal.tolist()

    def point_to_local(self, p: Vec3) -> Vec3:
        m = self._inv
        return Vec3(m[0][0] * p.x + m[0][1] * p.y + m[0][2] * p.z + m[0][3],
                    m[1][0] * p.x + m[1][1] * p.y + m[1][2] * p.z + m[1][3],
                    m[2][0] * p.x + m[2][1] * p.y + m[2][2] * p.z + m[2][3])

    def vector_to_local(self, v: Vec3) -> Vec3:
        # 방향 벡터는 이동 성분을 무시한다
        m = self._inv
        return Vec3(m[0][0] * v.x + m[0][1] * v.y + m[0][2] * v.z,
                    m[1][0] * v.x + m[1][1] * v.y + m[1][2] * v.z,
                    m[2][0] * v.x + m[2][1] * v.y + m[2][2] * v.z)

    def normal_to_world(self, n: Vec3) -> Vec3:
        m = self._nrm
        return Vec3(m[0][0] * n.x + m[0][1] * n.y + m[0][2] * n.z,
                    m[1][0] * n.x + m[1][1] * n.y + m[1][2] * n.z,
                    m[2][0] * n.x + m[2][1] * n.y + m[2][2] * n.z).normalize()
