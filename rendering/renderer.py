from __future__ import annotations

import ctypes
import logging
import threading
from typing import Callable, Dict, Optional, Tuple

import glfw
import numpy as np
from OpenGL import GL

from morph.categories import TOTAL_PARTICLES, Category, hex_to_rgb
from morph.scene import TreeScene
from rendering.projection import CameraRig
from utils.config import Gesture, RenderConfig, SharedState
from utils.fps import FPSCounter

logger = logging.getLogger(__name__)

_TOP_STAR_COLOR = hex_to_rgb("#FFD700")
_TOP_STAR_SIZE = 1.6


class TreeRenderer:
    """OpenGL preview drawing every particle category as soft point sprites."""

    def __init__(
        self,
        config: RenderConfig,
        shared_state: SharedState,
        scene: TreeScene,
        on_toggle_camera: Optional[Callable[[], object]] = None,
    ) -> None:
        self._config = config
        self._state = shared_state
        self._scene = scene
        self._on_toggle_camera = on_toggle_camera
        self._thread = threading.Thread(target=self._render_loop, daemon=True)
        self._stop_event = threading.Event()
        self._window: Optional[glfw._GLFWwindow] = None
        self._particle_program = None
        self._quad_program = None
        self._preview_texture: Optional[int] = None
        self._particle_vao: Optional[int] = None
        self._particle_vbos: Dict[str, int] = {}
        self._quad_vao: Optional[int] = None
        self._preview_size: Optional[Tuple[int, int]] = None
        self._rig = CameraRig(config)
        # every category plus the top star, uploaded in one draw call
        total = TOTAL_PARTICLES + 1
        self._positions = np.zeros((total, 3), dtype=np.float32)
        self._colors = np.zeros((total, 3), dtype=np.float32)
        self._sizes = np.zeros(total, dtype=np.float32)
        self._slices: Dict[Category, slice] = {}
        start = 0
        for category in scene.categories:
            count = scene.buffers[category].count
            self._slices[category] = slice(start, start + count)
            start += count
        self._draw_count = start + 1

    def start(self) -> None:
        self._stop_event.clear()
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join()

    def _render_loop(self) -> None:
        if not glfw.init():
            self._state.request_shutdown()
            raise RuntimeError("Failed to initialize GLFW. Ensure a valid OpenGL context is available.")
        glfw.window_hint(glfw.SAMPLES, 4)
        glfw.window_hint(glfw.CONTEXT_VERSION_MAJOR, 3)
        glfw.window_hint(glfw.CONTEXT_VERSION_MINOR, 3)
        glfw.window_hint(glfw.OPENGL_PROFILE, glfw.OPENGL_CORE_PROFILE)
        glfw.window_hint(glfw.OPENGL_FORWARD_COMPAT, glfw.TRUE)
        glfw.window_hint(glfw.RESIZABLE, glfw.FALSE)
        self._window = glfw.create_window(
            self._config.window_width,
            self._config.window_height,
            "Particle Tree",
            None,
            None,
        )
        if not self._window:
            glfw.terminate()
            self._state.request_shutdown()
            raise RuntimeError("Unable to create GLFW window.")
        glfw.make_context_current(self._window)
        glfw.set_key_callback(self._window, self._on_key)
        glfw.set_cursor_pos_callback(self._window, self._on_cursor)
        glfw.swap_interval(1)

        try:
            self._particle_program = self._build_program_from_source(_PARTICLE_VERT, _PARTICLE_FRAG)
            self._quad_program = self._build_program_from_source(_QUAD_VERT, _QUAD_FRAG)
            self._setup_quad()
            self._setup_particles()
            clock = FPSCounter()
            logger.info("Render loop started")

            while not glfw.window_should_close(self._window) and not self._stop_event.is_set():
                frame_time = clock.elapsed
                self._scene.update(frame_time, self._state.sample())
                phase = self._scene.state.phase
                self._state.set_phase(phase)
                self._rig.follow(phase)
                self._gather()
                self._draw_scene()
                preview = self._state.consume_preview() if self._state.camera_active else None
                if preview is not None:
                    self._draw_preview(preview)
                glfw.swap_buffers(self._window)
                glfw.poll_events()
                clock.tick()
        finally:
            glfw.terminate()
            self._state.request_shutdown()

    def _gather(self) -> None:
        for category, rows in self._slices.items():
            buffers = self._scene.buffers[category]
            np.copyto(self._positions[rows], buffers.positions)
            np.copyto(self._colors[rows], buffers.colors)
            np.max(buffers.scales, axis=1, out=self._sizes[rows])
        star = self._draw_count - 1
        self._positions[star] = self._scene.top_star_position
        self._colors[star] = _TOP_STAR_COLOR * (1.0 + self._scene.top_star_light * 0.3)
        self._sizes[star] = _TOP_STAR_SIZE * self._scene.top_star_scale

    def _setup_quad(self) -> None:
        quad_vertices = np.array(
            [-1.0, -1.0, 0.0, 0.0, 1.0, -1.0, 1.0, 0.0, -1.0, 1.0, 0.0, 1.0, 1.0, 1.0, 1.0, 1.0],
            dtype=np.float32,
        )
        self._quad_vao = GL.glGenVertexArrays(1)
        quad_vbo = GL.glGenBuffers(1)
        GL.glBindVertexArray(self._quad_vao)
        GL.glBindBuffer(GL.GL_ARRAY_BUFFER, quad_vbo)
        GL.glBufferData(GL.GL_ARRAY_BUFFER, quad_vertices.nbytes, quad_vertices, GL.GL_STATIC_DRAW)
        stride = 4 * quad_vertices.itemsize
        GL.glEnableVertexAttribArray(0)
        GL.glVertexAttribPointer(0, 2, GL.GL_FLOAT, GL.GL_FALSE, stride, ctypes.c_void_p(0))
        GL.glEnableVertexAttribArray(1)
        GL.glVertexAttribPointer(1, 2, GL.GL_FLOAT, GL.GL_FALSE, stride, ctypes.c_void_p(8))
        self._preview_texture = GL.glGenTextures(1)
        GL.glBindTexture(GL.GL_TEXTURE_2D, self._preview_texture)
        GL.glTexParameteri(GL.GL_TEXTURE_2D, GL.GL_TEXTURE_MIN_FILTER, GL.GL_LINEAR)
        GL.glTexParameteri(GL.GL_TEXTURE_2D, GL.GL_TEXTURE_MAG_FILTER, GL.GL_LINEAR)
        GL.glPixelStorei(GL.GL_UNPACK_ALIGNMENT, 1)
        GL.glUseProgram(self._quad_program)
        GL.glUniform1i(GL.glGetUniformLocation(self._quad_program, "uFrame"), 0)

    def _setup_particles(self) -> None:
        self._particle_vao = GL.glGenVertexArrays(1)
        GL.glBindVertexArray(self._particle_vao)
        for location, (name, array, width) in enumerate(
            (("position", self._positions, 3), ("color", self._colors, 3), ("size", self._sizes, 1))
        ):
            vbo = GL.glGenBuffers(1)
            GL.glBindBuffer(GL.GL_ARRAY_BUFFER, vbo)
            GL.glBufferData(GL.GL_ARRAY_BUFFER, array.nbytes, array, GL.GL_DYNAMIC_DRAW)
            GL.glEnableVertexAttribArray(location)
            GL.glVertexAttribPointer(location, width, GL.GL_FLOAT, GL.GL_FALSE, 0, ctypes.c_void_p(0))
            self._particle_vbos[name] = vbo
        GL.glEnable(GL.GL_PROGRAM_POINT_SIZE)

    def _draw_scene(self) -> None:
        cfg = self._config
        GL.glViewport(0, 0, cfg.window_width, cfg.window_height)
        GL.glClearColor(*cfg.background, 1.0)
        GL.glClear(GL.GL_COLOR_BUFFER_BIT)
        GL.glUseProgram(self._particle_program)
        GL.glBindVertexArray(self._particle_vao)
        for name, array in (("position", self._positions), ("color", self._colors), ("size", self._sizes)):
            GL.glBindBuffer(GL.GL_ARRAY_BUFFER, self._particle_vbos[name])
            GL.glBufferSubData(GL.GL_ARRAY_BUFFER, 0, array.nbytes, array)
        view_proj = self._rig.view_projection(cfg.aspect)
        GL.glUniformMatrix4fv(
            GL.glGetUniformLocation(self._particle_program, "uViewProj"), 1, GL.GL_TRUE, view_proj
        )
        GL.glUniform1f(GL.glGetUniformLocation(self._particle_program, "uPointScale"), cfg.point_size)
        GL.glEnable(GL.GL_BLEND)
        GL.glBlendFunc(GL.GL_SRC_ALPHA, GL.GL_ONE)
        GL.glDrawArrays(GL.GL_POINTS, 0, self._draw_count)
        GL.glDisable(GL.GL_BLEND)

    def _draw_preview(self, frame_rgb: np.ndarray) -> None:
        h, w, _ = frame_rgb.shape
        GL.glActiveTexture(GL.GL_TEXTURE0)
        GL.glBindTexture(GL.GL_TEXTURE_2D, self._preview_texture)
        if self._preview_size != (w, h):
            GL.glTexImage2D(
                GL.GL_TEXTURE_2D, 0, GL.GL_RGB, w, h, 0, GL.GL_RGB, GL.GL_UNSIGNED_BYTE, frame_rgb
            )
            self._preview_size = (w, h)
        else:
            GL.glTexSubImage2D(GL.GL_TEXTURE_2D, 0, 0, 0, w, h, GL.GL_RGB, GL.GL_UNSIGNED_BYTE, frame_rgb)
        cfg = self._config
        inset_w = int(cfg.window_width * cfg.preview_fraction)
        inset_h = int(inset_w * h / max(1, w))
        margin = 16
        GL.glViewport(cfg.window_width - inset_w - margin, cfg.window_height - inset_h - margin, inset_w, inset_h)
        GL.glUseProgram(self._quad_program)
        GL.glBindVertexArray(self._quad_vao)
        GL.glDrawArrays(GL.GL_TRIANGLE_STRIP, 0, 4)
        GL.glViewport(0, 0, cfg.window_width, cfg.window_height)

    def _build_program_from_source(self, vert_src: str, frag_src: str) -> int:
        vertex_shader = GL.glCreateShader(GL.GL_VERTEX_SHADER)
        GL.glShaderSource(vertex_shader, vert_src)
        GL.glCompileShader(vertex_shader)
        self._assert_shader(vertex_shader)
        fragment_shader = GL.glCreateShader(GL.GL_FRAGMENT_SHADER)
        GL.glShaderSource(fragment_shader, frag_src)
        GL.glCompileShader(fragment_shader)
        self._assert_shader(fragment_shader)
        program = GL.glCreateProgram()
        GL.glAttachShader(program, vertex_shader)
        GL.glAttachShader(program, fragment_shader)
        GL.glLinkProgram(program)
        self._assert_program(program)
        GL.glDeleteShader(vertex_shader)
        GL.glDeleteShader(fragment_shader)
        return program

    def _assert_shader(self, shader: int) -> None:
        status = GL.glGetShaderiv(shader, GL.GL_COMPILE_STATUS)
        if status != GL.GL_TRUE:
            log = GL.glGetShaderInfoLog(shader).decode()
            raise RuntimeError(f"Shader compilation failed: {log}")

    def _assert_program(self, program: int) -> None:
        status = GL.glGetProgramiv(program, GL.GL_LINK_STATUS)
        if status != GL.GL_TRUE:
            log = GL.glGetProgramInfoLog(program).decode()
            raise RuntimeError(f"Program link failed: {log}")

    def _on_cursor(self, window, x: float, y: float) -> None:  # pragma: no cover - GLFW callback
        cfg = self._config
        self._state.set_pointer(x / cfg.window_width * 2.0 - 1.0, 1.0 - y / cfg.window_height * 2.0)

    def _on_key(self, window, key, scancode, action, mods) -> None:  # pragma: no cover - GLFW callback
        if action != glfw.PRESS:
            return
        if key == glfw.KEY_ESCAPE:
            self._stop_event.set()
            self._state.request_shutdown()
            glfw.set_window_should_close(window, True)
        elif key == glfw.KEY_C and self._on_toggle_camera is not None:
            self._on_toggle_camera()
        elif key in (glfw.KEY_O, glfw.KEY_F) and not self._state.camera_active:
            gesture = Gesture.OPEN_PALM if key == glfw.KEY_O else Gesture.CLOSED_FIST
            logger.info("Simulated gesture %s", gesture.value)
            self._state.set_gesture(gesture)


_PARTICLE_VERT = """
#version 330 core
layout(location = 0) in vec3 in_position;
layout(location = 1) in vec3 in_color;
layout(location = 2) in float in_size;
uniform mat4 uViewProj;
uniform float uPointScale;
out vec3 v_color;
void main() {
    gl_Position = uViewProj * vec4(in_position, 1.0);
    gl_PointSize = max(1.0, in_size * uPointScale / max(gl_Position.w, 0.1));
    v_color = in_color;
}
"""

_PARTICLE_FRAG = """
#version 330 core
in vec3 v_color;
out vec4 fragColor;
void main() {
    vec2 d = gl_PointCoord - vec2(0.5);
    float falloff = smoothstep(0.5, 0.0, length(d));
    vec3 color = v_color / (1.0 + v_color);
    fragColor = vec4(color * 1.6, falloff);
}
"""

_QUAD_VERT = """
#version 330 core
layout(location = 0) in vec2 in_position;
layout(location = 1) in vec2 in_uv;
out vec2 v_uv;
void main() {
    v_uv = vec2(in_uv.x, 1.0 - in_uv.y);
    gl_Position = vec4(in_position, 0.0, 1.0);
}
"""

_QUAD_FRAG = """
#version 330 core
in vec2 v_uv;
out vec4 fragColor;
uniform sampler2D uFrame;
void main() {
    fragColor = vec4(texture(uFrame, v_uv).rgb, 1.0);
}
"""
