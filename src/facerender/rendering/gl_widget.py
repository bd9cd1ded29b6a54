"""PySide6 QOpenGLWidget subclass bridging Qt, the frame loop and OpenGL."""

import logging
import traceback

from PySide6.QtCore import QTimer
from PySide6.QtGui import QSurfaceFormat
from PySide6.QtOpenGLWidgets import QOpenGLWidget

from facerender.constants import DEFAULT_FRAME_HEIGHT, DEFAULT_FRAME_WIDTH, TARGET_FPS
from facerender.core.scene_graph import Scene
from facerender.rendering.camera import Camera
from facerender.rendering.lights import LightSetup
from facerender.rendering.renderer import GLRenderer

logger = logging.getLogger(__name__)


def create_gl_format() -> QSurfaceFormat:
    """Create an OpenGL 3.3 core-profile surface format with multisampling."""
    fmt = QSurfaceFormat()
    fmt.setVersion(3, 3)
    fmt.setProfile(QSurfaceFormat.OpenGLContextProfile.CoreProfile)
    fmt.setSamples(4)
    fmt.setDepthBufferSize(24)
    fmt.setSwapBehavior(QSurfaceFormat.SwapBehavior.DoubleBuffer)
    return fmt


class GLViewport(QOpenGLWidget):
    """Viewport whose timer runs one frame-loop step, then repaints.

    Parameters
    ----------
    scene : Scene
        Scene holding the face surfaces.
    frame_loop : FrameLoop, optional
        Stepped once per timer tick; without it the widget only repaints.
    """

    def __init__(
        self,
        scene: Scene,
        frame_loop=None,
        frame_size: tuple[int, int] = (DEFAULT_FRAME_WIDTH, DEFAULT_FRAME_HEIGHT),
        fps: int = TARGET_FPS,
        parent=None,
    ) -> None:
        super().__init__(parent)
        self.setFormat(create_gl_format())

        self.scene = scene
        self.frame_loop = frame_loop
        self.renderer = GLRenderer()
        self.camera = Camera()
        self.camera.frame_camera(*frame_size)
        self.lights = LightSetup()
        self._gl_ready = False

        self._timer = QTimer(self)
        self._timer.setInterval(max(1, int(1000 / fps)))
        self._timer.timeout.connect(self._on_timer)
        self.resize(*frame_size)

    # ------------------------------------------------------------------
    # QOpenGLWidget overrides
    # ------------------------------------------------------------------

    def initializeGL(self) -> None:
        """Called once when the GL context is ready."""
        try:
            logger.info("GLViewport: initialising OpenGL.")
            self.renderer.init_gl()
            self._gl_ready = True
            self._timer.start()
        except Exception:
            logger.error("initializeGL failed:\n%s", traceback.format_exc())

    def resizeGL(self, w: int, h: int) -> None:
        """Qt passes logical sizes; the framebuffer is scaled by devicePixelRatio."""
        dpr = self.devicePixelRatio()
        self.camera.set_aspect(w, h)
        self.renderer.resize(int(w * dpr), int(h * dpr))

    def paintGL(self) -> None:
        try:
            self.renderer.render(self.scene, self.camera, self.lights)
        except Exception:
            logger.error("paintGL failed:\n%s", traceback.format_exc())

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def cleanup(self) -> None:
        """Stop the timer and free GL resources (context must be current)."""
        self._timer.stop()
        if self._gl_ready:
            self.makeCurrent()
            self.renderer.destroy()
            self.doneCurrent()
            self._gl_ready = False

    def reframe(self, width: int, height: int) -> None:
        """Match the camera and window to a new capture frame size."""
        self.camera.frame_camera(width, height)
        self.resize(width, height)
        self.update()

    def _on_timer(self) -> None:
        """Advance the frame loop, then schedule a repaint of the new geometry."""
        if self.frame_loop is not None:
            self.frame_loop.step()
        self.update()
