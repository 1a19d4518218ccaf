import math
import numpy as np
from numba import njit, prange

from core.camera import Camera
from core.scene import Scene, RenderSettings
from core.geometry import Sphere, Triangle, Model, DET_EPSILON
from core.raytracer import Raytracer
from core.shading import EPSILON
from renderers.base_renderer import BaseRenderer, RendererFactory

KIND_SPHERE = 0.0
KIND_TRIANGLE = 1.0

# 물체 한 줄(prims)의 레이아웃
# 0: 종류, 1-12: 역변환 3x4, 13-21: 법선 행렬 3x3, 22: 반지름,
# 23-25: 정점별 재질 번호, 26-34: 정점 위치, 35-43: 정점 법선, 44-49: UV
PRIM_SIZE = 50

# 재질 한 줄: 0-2 ambient, 3-5 diffuse, 6-8 specular, 9 굴절률, 10 텍스처 오프셋, 11 폭, 12 높이
MATERIAL_SIZE = 13

# 조명 한 줄: 0-2 위치, 3-5 색, 6-8 감쇠(constant, linear, quadratic)
LIGHT_SIZE = 9

# 교차점 셰이딩 값: 0-2 법선, 3-5 텍스처, 6-8 ambient, 9-11 diffuse, 12-14 specular, 15 굴절률
SURF_SIZE = 16

# 작업 스택 한 줄: 0 물체, 1-2 beta/gamma, 3-5 위치, 6-8 입사 방향, 9 깊이, 10-12 가중치
TASK_SIZE = 13


@njit
def nb_local_ray(m, ox, oy, oz, dx, dy, dz):
    """월드 광선을 물체 공간으로 (방향은 이동 성분 제외)"""
    ex = m[1] * ox + m[2] * oy + m[3] * oz + m[4]
    ey = m[5] * ox + m[6] * oy + m[7] * oz + m[8]
    ez = m[9] * ox + m[10] * oy + m[11] * oz + m[12]
    lx = m[1] * dx + m[2] * dy + m[3] * dz
    ly = m[5] * dx + m[6] * dy + m[7] * dz
    lz = m[9] * dx + m[10] * dy + m[11] * dz
    return ex, ey, ez, lx, ly, lz


@njit
def nb_sphere_time(r, ex, ey, ez, dx, dy, dz):
    dd = dx * dx + dy * dy + dz * dz
    if dd == 0.0:
        return -1.0
    de = dx * ex + dy * ey + dz * ez
    discriminant = de * de - dd * (ex * ex + ey * ey + ez * ez - r * r)
    if discriminant < 0.0:
        return -1.0
    sqrt_d = math.sqrt(discriminant)
    t1 = (-de + sqrt_d) / dd
    t2 = (-de - sqrt_d) / dd
    if t1 <= 0.0:
        return -1.0
    if t2 <= 0.0:
        return t1
    return t2


@njit
def nb_triangle_solve(m, ex, ey, ez, dx, dy, dz):
    """크래머 공식. 교차가 없으면 t = -1"""
    A = m[26] - m[29]
    B = m[27] - m[30]
    C = m[28] - m[31]

    D = m[26] - m[32]
    E = m[27] - m[33]
    F = m[28] - m[34]

    G = dx
    H = dy
    I = dz

    J = m[26] - ex
    K = m[27] - ey
    L = m[28] - ez

    EIHF = E * I - H * F
    GFDI = G * F - D * I
    DHEG = D * H - E * G

    M = A * EIHF + B * GFDI + C * DHEG
    if abs(M) < DET_EPSILON:
        return -1.0, 0.0, 0.0

    AKJB = A * K - J * B
    JCAL = J * C - A * L
    BLKC = B * L - K * C

    beta = (J * EIHF + K * GFDI + L * DHEG) / M
    gamma = (I * AKJB + H * JCAL + G * BLKC) / M
    t = -(F * AKJB + E * JCAL + D * BLKC) / M

    if t >= 0.0 and beta >= 0.0 and gamma >= 0.0 and beta + gamma <= 1.0:
        return t, beta, gamma
    return -1.0, 0.0, 0.0


@njit
def nb_prim_time(prims, i, ox, oy, oz, dx, dy, dz):
    m = prims[i]
    ex, ey, ez, lx, ly, lz = nb_local_ray(m, ox, oy, oz, dx, dy, dz)
    if m[0] == KIND_SPHERE:
        return nb_sphere_time(m[22], ex, ey, ez, lx, ly, lz), 0.0, 0.0
    return nb_triangle_solve(m, ex, ey, ez, lx, ly, lz)


@njit
def nb_nearest(prims, ox, oy, oz, dx, dy, dz):
    best = -1.0
    idx = -1
    best_beta = 0.0
    best_gamma = 0.0
    for i in range(prims.shape[0]):
        t, beta, gamma = nb_prim_time(prims, i, ox, oy, oz, dx, dy, dz)
        if t >= 0.0 and (idx < 0 or t < best):
            best = t
            idx = i
            best_beta = beta
            best_gamma = gamma
    return idx, best, best_beta, best_gamma


@njit
def nb_shadowed(prims, ox, oy, oz, dx, dy, dz, dist):
    for i in range(prims.shape[0]):
        t, beta, gamma = nb_prim_time(prims, i, ox, oy, oz, dx, dy, dz)
        if t >= 0.0 and t < dist:
            return True
    return False


@njit
def nb_texel(materials, textures, mi, u, v):
    w = int(materials[mi, 11])
    h = int(materials[mi, 12])
    if w == 0 or h == 0:
        return 1.0, 1.0, 1.0
    x = int(math.floor(u * w)) % w
    y = int(math.floor(v * h)) % h
    if x < 0:
        x += w
    if y < 0:
        y += h
    k = int(materials[mi, 10]) + y * w + x
    return textures[k, 0], textures[k, 1], textures[k, 2]


@njit
def nb_normal_to_world(m, nx, ny, nz):
    wx = m[13] * nx + m[14] * ny + m[15] * nz
    wy = m[16] * nx + m[17] * ny + m[18] * nz
    wz = m[19] * nx + m[20] * ny + m[21] * nz
    length = math.sqrt(wx * wx + wy * wy + wz * wz)
    if length == 0.0:
        return 0.0, 0.0, 0.0
    return wx / length, wy / length, wz / length


@njit
def nb_surface(prims, materials, textures, i, beta, gamma, px, py, pz, out):
    """교차점의 법선, 텍스처 색, 보간된 재질 값을 out에 채운다"""
    m = prims[i]
    if m[0] == KIND_SPHERE:
        lx = m[1] * px + m[2] * py + m[3] * pz + m[4]
        ly = m[5] * px + m[6] * py + m[7] * pz + m[8]
        lz = m[9] * px + m[10] * py + m[11] * pz + m[12]
        r = m[22]
        if r > 0.0:
            lx /= r
            ly /= r
            lz /= r
        nx, ny, nz = nb_normal_to_world(m, lx, ly, lz)
        theta = math.acos(max(-1.0, min(1.0, ny)))
        phi = math.atan2(nx, nz)
        u = phi / (2.0 * math.pi)
        v = (math.pi - theta) / math.pi
        mi = int(m[23])
        tr, tg, tb = nb_texel(materials, textures, mi, u, v)
        out[0] = nx
        out[1] = ny
        out[2] = nz
        out[3] = tr
        out[4] = tg
        out[5] = tb
        for k in range(9):
            out[6 + k] = materials[mi, k]
        out[15] = materials[mi, 9]
        return

    alpha = 1.0 - beta - gamma
    nx, ny, nz = nb_normal_to_world(
        m,
        alpha * m[35] + beta * m[38] + gamma * m[41],
        alpha * m[36] + beta * m[39] + gamma * m[42],
        alpha * m[37] + beta * m[40] + gamma * m[43])
    u = alpha * m[44] + beta * m[46] + gamma * m[48]
    v = alpha * m[45] + beta * m[47] + gamma * m[49]
    out[0] = nx
    out[1] = ny
    out[2] = nz
    for k in range(3, SURF_SIZE):
        out[k] = 0.0
    for c in range(3):
        if c == 0:
            weight = alpha
        elif c == 1:
            weight = beta
        else:
            weight = gamma
        mi = int(m[23 + c])
        tr, tg, tb = nb_texel(materials, textures, mi, u, v)
        out[3] += tr * weight
        out[4] += tg * weight
        out[5] += tb * weight
        for k in range(9):
            out[6 + k] += materials[mi, k] * weight
        out[15] += materials[mi, 9] * weight


@njit
def nb_local_color(prims, lights, params, surf, px, py, pz):
    """환경광 + 그림자를 고려한 확산광"""
    sr = 0.0
    sg = 0.0
    sb = 0.0
    for li in range(lights.shape[0]):
        lx = lights[li, 0] - px
        ly = lights[li, 1] - py
        lz = lights[li, 2] - pz
        dist = math.sqrt(lx * lx + ly * ly + lz * lz)
        if dist > 0.0:
            lx /= dist
            ly /= dist
            lz /= dist

        ox = px + lx * EPSILON
        oy = py + ly * EPSILON
        oz = pz + lz * EPSILON
        qx = lights[li, 0] - ox
        qy = lights[li, 1] - oy
        qz = lights[li, 2] - oz
        if nb_shadowed(prims, ox, oy, oz, lx, ly, lz, math.sqrt(qx * qx + qy * qy + qz * qz)):
            continue

        att = 1.0 / (lights[li, 6] + lights[li, 7] * dist + lights[li, 8] * dist * dist)
        ndl = max(surf[0] * lx + surf[1] * ly + surf[2] * lz, 0.0)
        sr += lights[li, 3] * att * ndl
        sg += lights[li, 4] * att * ndl
        sb += lights[li, 5] * att * ndl

    r = surf[3] * (params[3] * surf[6] + surf[9] * sr)
    g = surf[4] * (params[4] * surf[7] + surf[10] * sg)
    b = surf[5] * (params[5] * surf[8] + surf[11] * sb)
    return r, g, b


@njit
def nb_refraction(ix, iy, iz, nx, ny, nz, index, outer):
    """굴절 방향과 Fresnel 반사율. 전반사면 영벡터와 1.0"""
    length = math.sqrt(ix * ix + iy * iy + iz * iz)
    dx = ix / length
    dy = iy / length
    dz = iz / length
    entering = dx * nx + dy * ny + dz * nz < 0.0
    if entering:
        ox, oy, oz = nx, ny, nz
        n = outer
        nt = index
    else:
        ox, oy, oz = -nx, -ny, -nz
        n = index
        nt = outer

    dn = dx * ox + dy * oy + dz * oz
    discr = 1.0 - (n * n * (1.0 - dn * dn)) / (nt * nt)
    if discr < 0.0:
        return 0.0, 0.0, 0.0, 1.0

    s = n / nt
    root = math.sqrt(discr)
    tx = (dx - ox * dn) * s - ox * root
    ty = (dy - oy * dn) * s - oy * root
    tz = (dz - oz * dn) * s - oz * root
    length = math.sqrt(tx * tx + ty * ty + tz * tz)
    if length == 0.0:
        return 0.0, 0.0, 0.0, 1.0
    tx /= length
    ty /= length
    tz /= length

    if entering:
        cosine = tx * ox + ty * oy + tz * oz
    else:
        cosine = dn
    r0 = ((nt - 1.0) / (nt + 1.0)) ** 2
    return tx, ty, tz, r0 + (1.0 - r0) * (1.0 + cosine) ** 5


@njit
def nb_shade_branch(prims, materials, textures, lights, params, surf, stack, top,
                    px, py, pz, bx, by, bz, depth, wr, wg, wb):
    """
    한 방향(반사 또는 굴절)으로 광선을 쏘고 지역 색을 더한다.
    더 깊이 들어가야 하면 작업을 스택에 넣는다. (새 top, r, g, b) 반환
    """
    ox = px + bx * EPSILON
    oy = py + by * EPSILON
    oz = pz + bz * EPSILON
    idx, t, beta, gamma = nb_nearest(prims, ox, oy, oz, bx, by, bz)
    if idx < 0:
        return top, wr * params[0], wg * params[1], wb * params[2]

    hx = ox + bx * t
    hy = oy + by * t
    hz = oz + bz * t
    nb_surface(prims, materials, textures, idx, beta, gamma, hx, hy, hz, surf)
    lr, lg, lb = nb_local_color(prims, lights, params, surf, hx, hy, hz)

    if depth > 1 and not (surf[12] == 0.0 and surf[13] == 0.0 and surf[14] == 0.0):
        stack[top, 0] = idx
        stack[top, 1] = beta
        stack[top, 2] = gamma
        stack[top, 3] = hx
        stack[top, 4] = hy
        stack[top, 5] = hz
        stack[top, 6] = bx
        stack[top, 7] = by
        stack[top, 8] = bz
        stack[top, 9] = depth - 1
        stack[top, 10] = wr * surf[12]
        stack[top, 11] = wg * surf[13]
        stack[top, 12] = wb * surf[14]
        top += 1
    return top, wr * lr, wg * lg, wb * lb


@njit
def nb_trace_ray(prims, materials, textures, lights, params, ox, oy, oz, dx, dy, dz,
                 max_depth, surf, stack):
    """재귀 대신 (물체, 위치, 방향, 깊이, 가중치) 작업 스택으로 반사/굴절을 따라간다"""
    idx, t, beta, gamma = nb_nearest(prims, ox, oy, oz, dx, dy, dz)
    if idx < 0:
        return params[0], params[1], params[2]

    px = ox + dx * t
    py = oy + dy * t
    pz = oz + dz * t
    nb_surface(prims, materials, textures, idx, beta, gamma, px, py, pz, surf)

    cr = 0.0
    cg = 0.0
    cb = 0.0
    wr = 1.0
    wg = 1.0
    wb = 1.0
    if surf[15] == 0.0:
        cr, cg, cb = nb_local_color(prims, lights, params, surf, px, py, pz)
        wr = surf[12]
        wg = surf[13]
        wb = surf[14]
        if wr == 0.0 and wg == 0.0 and wb == 0.0:
            return cr, cg, cb

    stack[0, 0] = idx
    stack[0, 1] = beta
    stack[0, 2] = gamma
    stack[0, 3] = px
    stack[0, 4] = py
    stack[0, 5] = pz
    stack[0, 6] = dx
    stack[0, 7] = dy
    stack[0, 8] = dz
    stack[0, 9] = max_depth
    stack[0, 10] = wr
    stack[0, 11] = wg
    stack[0, 12] = wb
    top = 1

    while top > 0:
        top -= 1
        cur = int(stack[top, 0])
        cbeta = stack[top, 1]
        cgamma = stack[top, 2]
        px = stack[top, 3]
        py = stack[top, 4]
        pz = stack[top, 5]
        ix = stack[top, 6]
        iy = stack[top, 7]
        iz = stack[top, 8]
        depth = int(stack[top, 9])
        wr = stack[top, 10]
        wg = stack[top, 11]
        wb = stack[top, 12]

        nb_surface(prims, materials, textures, cur, cbeta, cgamma, px, py, pz, surf)
        nx = surf[0]
        ny = surf[1]
        nz = surf[2]
        # 현재 표면의 텍스처는 각 가지에 한 번씩 곱해진다
        wr *= surf[3]
        wg *= surf[4]
        wb *= surf[5]
        refr = surf[15]

        dn = ix * nx + iy * ny + iz * nz
        rx = ix - 2.0 * dn * nx
        ry = iy - 2.0 * dn * ny
        rz = iz - 2.0 * dn * nz
        length = math.sqrt(rx * rx + ry * ry + rz * rz)
        if length > 0.0:
            rx /= length
            ry /= length
            rz /= length

        R = 1.0
        refracts = False
        tx = 0.0
        ty = 0.0
        tz = 0.0
        if refr != 0.0:
            tx, ty, tz, R = nb_refraction(ix, iy, iz, nx, ny, nz, refr, params[6])
            refracts = not (tx == 0.0 and ty == 0.0 and tz == 0.0)
            if not refracts:
                R = 1.0

        top, r, g, b = nb_shade_branch(prims, materials, textures, lights, params, surf, stack, top,
                                       px, py, pz, rx, ry, rz, depth, wr * R, wg * R, wb * R)
        cr += r
        cg += g
        cb += b

        if refracts:
            T = 1.0 - R
            top, r, g, b = nb_shade_branch(prims, materials, textures, lights, params, surf, stack, top,
                                           px, py, pz, tx, ty, tz, depth, wr * T, wg * T, wb * T)
            cr += r
            cg += g
            cb += b

    return cr, cg, cb


@njit(parallel=True)
def nb_render_kernel(output, prims, materials, textures, lights, params, frame, width, height, max_depth):
    """행 단위로 병렬 처리. output[y, x]의 y는 아래쪽 기준"""
    for y in prange(height):
        surf = np.empty(SURF_SIZE)
        stack = np.empty((2 * max_depth + 2, TASK_SIZE))
        for x in range(width):
            u_s = frame[12] + (frame[13] - frame[12]) * (x + 0.5) / width
            v_s = frame[14] + (frame[15] - frame[14]) * (y + 0.5) / height
            dx = frame[3] * u_s + frame[6] * v_s + frame[9] * frame[16]
            dy = frame[4] * u_s + frame[7] * v_s + frame[10] * frame[16]
            dz = frame[5] * u_s + frame[8] * v_s + frame[11] * frame[16]
            length = math.sqrt(dx * dx + dy * dy + dz * dz)
            if length > 0.0:
                dx /= length
                dy /= length
                dz /= length
            r, g, b = nb_trace_ray(prims, materials, textures, lights, params,
                                   frame[0], frame[1], frame[2], dx, dy, dz,
                                   max_depth, surf, stack)
            output[y, x, 0] = r
            output[y, x, 1] = g
            output[y, x, 2] = b


class NumbaRenderer(BaseRenderer):
    """numba로 컴파일한 병렬 CPU 렌더러. 씬을 numpy 배열로 펼쳐서 커널에 넘긴다"""

    label = "Numba"
    capabilities = (
        "ray_tracing",
        "shadows",
        "reflection",
        "refraction",
        "textures",
        "triangle_meshes",
        "point_lights",
        "parallel_rows",
        "jit_compiled",
    )

    def __init__(self):
        super().__init__("numba_raytracer")

    def render_radiance(self, scene: Scene, camera: Camera, settings: RenderSettings) -> np.ndarray:
        """(height, width, 3) float 배열, 행 0이 이미지 맨 아래"""
        tracer = Raytracer(scene, settings.width, settings.height, camera, settings.max_depth)

        material_index, materials, textures = self._prepare_material_data(scene)
        prims = self._prepare_scene_data(scene, material_index)
        lights = self._prepare_light_data(scene)
        params = self._prepare_scene_params(scene)
        frame = self._prepare_camera_data(tracer)

        print(f"씬 데이터: 물체 {prims.shape[0]}개, 재질 {materials.shape[0]}개, 조명 {lights.shape[0]}개")
        print(f"텍스처 데이터 크기: {textures.shape[0]} texels")

        output = np.zeros((settings.height, settings.width, 3), dtype=np.float64)
        nb_render_kernel(output, prims, materials, textures, lights, params, frame,
                         settings.width, settings.height, settings.max_depth)
        return output

    def _collect_materials(self, scene: Scene) -> list:
        found = []
        seen = set()

        def add(mat):
            if mat is None:
                raise ValueError("every geometry needs a material")
            if id(mat) not in seen:
                seen.add(id(mat))
                found.append(mat)

        for obj in scene.geometries:
            if isinstance(obj, (Sphere, Model)):
                add(obj.material)
            elif isinstance(obj, Triangle):
                for vertex in obj.vertices:
                    add(vertex.material)
        return found

    def _prepare_material_data(self, scene: Scene):
        """재질 표와 모든 텍스처를 이어 붙인 texel 배열"""
        found = self._collect_materials(scene)
        material_index = {}
        rows = []
        texels = []
        offset = 0
        for i, mat in enumerate(found):
            material_index[id(mat)] = i
            tex_w = tex_h = 0
            tex_offset = offset
            if mat.texture is not None and not mat.texture.is_empty:
                tex_w, tex_h = mat.texture.width, mat.texture.height
                pixel_data = mat.texture.pixels[:, :, :3].reshape(-1, 3)
                texels.append(pixel_data)
                offset += pixel_data.shape[0]
            rows.append([
                mat.ambient.x, mat.ambient.y, mat.ambient.z,
                mat.diffuse.x, mat.diffuse.y, mat.diffuse.z,
                mat.specular.x, mat.specular.y, mat.specular.z,
                mat.refractive_index,
                tex_offset, tex_w, tex_h
            ])

        materials = np.array(rows, dtype=np.float64).reshape(-1, MATERIAL_SIZE)
        if texels:
            textures = np.ascontiguousarray(np.concatenate(texels), dtype=np.float64)
        else:
            # 기본 흰색 (참조되지 않음)
            textures = np.ones((1, 3), dtype=np.float64)
        return material_index, materials, textures

    def _transform_row(self, obj) -> list:
        inv = obj.transform.inverse
        nrm = obj.transform.normal
        return inv[:3, :4].reshape(-1).tolist() + nrm.reshape(-1).tolist()

    def _prepare_scene_data(self, scene: Scene, material_index: dict) -> np.ndarray:
        """씬 데이터를 커널 친화적 형태로 변환. 메시는 삼각형 단위로 펼친다"""
        rows = []
        for obj in scene.geometries:
            transform = self._transform_row(obj)
            if isinstance(obj, Sphere):
                mi = material_index[id(obj.material)]
                rows.append([KIND_SPHERE] + transform + [obj.radius, mi, mi, mi] + [0.0] * 24)
            elif isinstance(obj, Triangle):
                A, B, C = obj.vertices
                rows.append([KIND_TRIANGLE] + transform + [0.0] +
                            [material_index[id(v.material)] for v in obj.vertices] +
                            [*A.position, *B.position, *C.position] +
                            [*A.normal, *B.normal, *C.normal] +
                            [*A.tex_coord, *B.tex_coord, *C.tex_coord])
            elif isinstance(obj, Model):
                mi = material_index[id(obj.material)]
                for i in range(obj.mesh.num_triangles()):
                    A, B, C = obj.mesh.corners(i)
                    rows.append([KIND_TRIANGLE] + transform + [0.0, mi, mi, mi] +
                                [*A.position, *B.position, *C.position] +
                                [*A.normal, *B.normal, *C.normal] +
                                [*A.tex_coord, *B.tex_coord, *C.tex_coord])
            else:
                raise ValueError(f"Unsupported geometry: {type(obj).__name__}")

        return np.array(rows, dtype=np.float64).reshape(-1, PRIM_SIZE)

    def _prepare_light_data(self, scene: Scene) -> np.ndarray:
        rows = []
        for light in scene.lights:
            att = light.attenuation
            rows.append([*light.position, *light.color, att.constant, att.linear, att.quadratic])
        return np.array(rows, dtype=np.float64).reshape(-1, LIGHT_SIZE)

    def _prepare_scene_params(self, scene: Scene) -> np.ndarray:
        return np.array([*scene.background_color, *scene.ambient_light, scene.refractive_index],
                        dtype=np.float64)

    def _prepare_camera_data(self, tracer: Raytracer) -> np.ndarray:
        return np.array([
            *tracer.eye, *tracer.u, *tracer.v, *tracer.w,
            tracer.left, tracer.right, tracer.bottom, tracer.top,
            tracer.near_clip
        ], dtype=np.float64)


# 렌더러 등록
RendererFactory.register("numba_raytracer", NumbaRenderer)
