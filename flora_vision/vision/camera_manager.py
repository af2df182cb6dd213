"""
摄像头资源管理

职责：
1. 申请摄像头：request_access() - 打开设备（在线程中执行，不阻塞事件循环）
2. 单次截图：capture_frame() - 同步，返回 data URI
3. 预览帧：read_preview_frame()
4. 释放设备：release() - 幂等，可多次调用

不负责：
- 诊断调用
- 页面状态（由 AcquisitionStateMachine 管理）
"""
import asyncio
import threading
from contextlib import asynccontextmanager
from enum import Enum
from typing import Callable, Optional

import cv2

from flora_vision.ai.data_uri import encode_data_uri
from flora_vision.common import CameraConfig, Logger
from flora_vision.errors import CameraCaptureError, CameraPermissionError


class CameraPermission(Enum):
    """摄像头权限（三态）"""
    UNKNOWN = "unknown"
    GRANTED = "granted"
    DENIED = "denied"


class CameraState(Enum):
    """摄像头子状态（只在 AwaitingCamera 步骤内有意义）"""
    IDLE = "idle"
    REQUESTING_PERMISSION = "requesting_permission"
    STREAMING = "streaming"
    CAPTURE_REQUESTED = "capture_requested"
    PERMISSION_DENIED = "permission_denied"


_MEDIA_TYPES = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "webp": "image/webp",
}


class CameraManager:
    """摄像头资源管理器

    设备句柄只在 Streaming / CaptureRequested 期间持有，
    release() 之后不再持有任何句柄。
    """

    def __init__(self, config: CameraConfig,
                 log_dir: Optional[str] = "logs",
                 device_factory: Optional[Callable[[int], object]] = None):
        """
        Args:
            config: 摄像头配置
            log_dir: 日志目录
            device_factory: 设备工厂，默认 cv2.VideoCapture（测试时注入假设备）
        """
        self.config = config
        self.logger = Logger(log_dir)
        self._device_factory = device_factory or cv2.VideoCapture
        self._device = None
        self._state = CameraState.IDLE
        self._generation = 0  # 每次 release() 加一

        # 保护设备句柄（打开操作在工作线程中完成）
        self._lock = threading.Lock()

    @property
    def state(self) -> CameraState:
        return self._state

    @property
    def is_holding_device(self) -> bool:
        return self._device is not None

    # ==================== 申请设备 ====================

    async def request_access(self) -> CameraPermission:
        """申请摄像头（挂起直到设备打开或失败）

        Returns:
            CameraPermission.GRANTED 或 CameraPermission.DENIED；
            等待期间被 release() 取消时返回 CameraPermission.UNKNOWN
        """
        if self._device is not None:
            return CameraPermission.GRANTED

        generation = self._generation
        self._state = CameraState.REQUESTING_PERMISSION
        self.logger.log("camera", "info", f"申请摄像头 (索引: {self.config.camera_index})")

        try:
            opened = await asyncio.to_thread(self._open_device, generation)
        except CameraPermissionError as e:
            if generation != self._generation:
                return CameraPermission.UNKNOWN
            self._state = CameraState.PERMISSION_DENIED
            self.logger.log("camera", "warning", f"摄像头不可用: {e}")
            return CameraPermission.DENIED
        except asyncio.CancelledError:
            # 工作线程仍在运行：作废本次申请，迟到的设备由线程自行关闭
            with self._lock:
                self._generation += 1
                if self._state is CameraState.REQUESTING_PERMISSION:
                    self._state = CameraState.IDLE
            self.logger.log("camera", "info", "摄像头申请被取消")
            raise

        if not opened:
            self.logger.log("camera", "info", "申请期间摄像头已被释放，关闭新打开的设备")
            return CameraPermission.UNKNOWN

        self.logger.log("camera", "info", "摄像头已打开 - Streaming")
        return CameraPermission.GRANTED

    def _open_device(self, generation: int) -> bool:
        """打开设备并设置参数（在工作线程中执行）

        Returns:
            设备已交给管理器返回 True；申请已被作废（设备已关闭）返回 False

        Raises:
            CameraPermissionError: 打开或设置失败（设备已关闭）
        """
        try:
            device = self._device_factory(self.config.camera_index)
        except Exception as e:
            raise CameraPermissionError(f"摄像头初始化失败: {e!r}") from e

        try:
            if not device.isOpened():
                raise CameraPermissionError(f"无法打开摄像头 (索引: {self.config.camera_index})")

            # 设置分辨率
            width, height = self.config.resolution
            device.set(cv2.CAP_PROP_FRAME_WIDTH, width)
            device.set(cv2.CAP_PROP_FRAME_HEIGHT, height)

            # 设置缓冲区大小
            device.set(cv2.CAP_PROP_BUFFERSIZE, 1)
        except CameraPermissionError:
            device.release()
            raise
        except Exception as e:
            device.release()
            raise CameraPermissionError(f"摄像头参数设置失败: {e!r}") from e

        with self._lock:
            # 等待期间已经 release() 或被取消
            if generation != self._generation:
                device.release()
                return False

            # 并发申请：保留先打开的设备
            if self._device is not None:
                device.release()
                return True

            self._device = device
            self._state = CameraState.STREAMING
        return True

    # ==================== 截图 / 预览 ====================

    def capture_frame(self) -> str:
        """截取一帧（同步）

        Returns:
            data:<mimetype>;base64,<data> 格式的图片

        Raises:
            CameraCaptureError: 不在 Streaming 状态，或读取/编码失败
        """
        with self._lock:
            if self._state is not CameraState.STREAMING or self._device is None:
                raise CameraCaptureError(f"当前状态不能截图: {self._state.value}")

            self._state = CameraState.CAPTURE_REQUESTED
            try:
                image_format = self.config.image_format.lower()

                # 清空缓冲区
                for _ in range(self.config.warmup_frames):
                    self._device.read()

                ret, frame = self._device.read()
                if not ret or frame is None:
                    raise CameraCaptureError("无法从摄像头读取图像")

                ok, buffer = cv2.imencode(f".{image_format}", frame)
                if not ok:
                    raise CameraCaptureError(f"图像编码失败: {image_format}")

            except CameraCaptureError:
                self._state = CameraState.STREAMING
                raise
            except cv2.error as e:
                self._state = CameraState.STREAMING
                raise CameraCaptureError(f"截图异常: {e}") from e

        media_type = _MEDIA_TYPES.get(image_format, f"image/{image_format}")
        self.logger.log("camera", "info", f"截图成功: {frame.shape[1]}x{frame.shape[0]} {media_type}")
        return encode_data_uri(buffer.tobytes(), media_type)

    def read_preview_frame(self):
        """读取一帧原始画面（用于实时预览），不在 Streaming 状态返回 None"""
        with self._lock:
            if self._state is not CameraState.STREAMING or self._device is None:
                return None
            ret, frame = self._device.read()
        return frame if ret else None

    # ==================== 资源管理 ====================

    def release(self):
        """释放摄像头（幂等）"""
        with self._lock:
            self._generation += 1
            if self._device is not None:
                self._device.release()
                self._device = None
                self.logger.log("camera", "info", "摄像头已释放")

            if self._state is not CameraState.PERMISSION_DENIED:
                self._state = CameraState.IDLE

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()

    @asynccontextmanager
    async def session(self):
        """作用域内持有摄像头，退出时一定释放

        Raises:
            CameraPermissionError: 无法获得摄像头
        """
        try:
            permission = await self.request_access()
            if permission is not CameraPermission.GRANTED:
                raise CameraPermissionError("摄像头权限被拒绝")
            yield self
        finally:
            self.release()


# ==================== 工厂函数 ====================

def create_camera_manager(config: CameraConfig,
                          log_dir: Optional[str] = "logs",
                          device_factory: Optional[Callable[[int], object]] = None) -> CameraManager:
    """创建摄像头管理器（每个会话一个，不做全局单例）"""
    return CameraManager(config, log_dir=log_dir, device_factory=device_factory)
