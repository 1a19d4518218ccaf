from typing import List, Sequence, Tuple

from core.math import Vec3


class MeshVertex:
    def __init__(self, position: Vec3, normal: Vec3 = None, tex_coord: Tuple[float, float] = (0.0, 0.0)):
        self.position = position
        self.normal = normal if normal is not None else Vec3(0, 0, 0)
        self.tex_coord = (float(tex_coord[0]), float(tex_coord[1]))


class MeshTriangle:
    def __init__(self, a: int, b: int, c: int):
        self.vertices = (int(a), int(b), int(c))


class Mesh:
    """정점 배열과 인덱스 삼각형 목록. 여러 Model이 공유할 수 있다."""

    def __init__(self, vertices: Sequence[MeshVertex], triangles: Sequence[MeshTriangle]):
        self.vertices: List[MeshVertex] = list(vertices)
        self.triangles: List[MeshTriangle] = list(triangles)

        n = len(self.vertices)
        for i, tri in enumerate(self.triangles):
            for idx in tri.vertices:
                if idx < 0 or idx >= n:
                    raise ValueError(f"triangle {i} references vertex {idx}, mesh has {n} vertices")

    def num_vertices(self) -> int:
        return len(self.vertices)

    def num_triangles(self) -> int:
        return len(self.triangles)

    def corners(self, index: int):
        tri = self.triangles[index]
        return tuple(self.vertices[i] for i in tri.vertices)
