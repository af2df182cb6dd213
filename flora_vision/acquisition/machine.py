"""
获取流程状态机

Initial ─chooseUpload→ AwaitingUpload ─fileSelected→ Submitting
Initial ─chooseCamera→ AwaitingCamera ─captureConfirmed→ Submitting
AwaitingCamera ─permissionDenied→ Initial
Submitting → Succeeded（是植物）/ Failed（不是植物、校验失败、服务失败）
任意状态 ─reset→ Initial
"""
import inspect
import itertools
from dataclasses import replace
from typing import Callable, List, Optional

from flora_vision import common
from flora_vision.ai.data_uri import image_to_data_uri
from flora_vision.ai.diagnosis_client import create_diagnosis_client
from flora_vision.ai.schemas import build_request
from flora_vision.common import DEFAULT_DESCRIPTION, Config, Logger
from flora_vision.errors import (
    CameraCaptureError,
    DiagnosisServiceError,
    PlantNotRecognizedError,
    SchemaValidationError,
)
from flora_vision.vision.camera_manager import CameraPermission, create_camera_manager
from .state import (
    AcquisitionState,
    AcquisitionStep,
    CaptureConfirmed,
    ChooseCamera,
    ChooseUpload,
    FileSelected,
    Notice,
    NoticeLevel,
    Reset,
)

# 用户可见的提示文案
NOT_A_PLANT_MESSAGE = "Tanaman tidak dikenali. Silakan coba ulang dengan foto yang lebih jelas."
ANALYSIS_FAILED_PREFIX = "Gagal menganalisis gambar."
INVALID_RESPONSE_MESSAGE = f"{ANALYSIS_FAILED_PREFIX} Respons layanan diagnosis tidak valid."
UNKNOWN_ERROR_MESSAGE = f"{ANALYSIS_FAILED_PREFIX} Terjadi kesalahan tidak diketahui."
INVALID_IMAGE_MESSAGE = "Berkas yang dipilih bukan gambar yang valid."
CAPTURE_FAILED_MESSAGE = "Gagal mengambil gambar dari kamera."

CAMERA_DENIED_NOTICE = Notice(
    level=NoticeLevel.WARNING,
    title="Izin Kamera Ditolak",
    message="Mohon izinkan akses kamera di pengaturan browser Anda untuk menggunakan fitur ini."
)
CAMERA_UNAVAILABLE_NOTICE = Notice(
    level=NoticeLevel.WARNING,
    title="Kamera Tidak Tersedia",
    message="Kamera tidak dapat dibuka. Silakan coba lagi atau unggah foto."
)
ANALYSIS_FAILED_TITLE = "Analisis Gagal"


class AcquisitionStateMachine:
    """图片获取 -> 诊断结果 状态机

    职责：
    1. 维护唯一的 AcquisitionState
    2. 处理用户事件，驱动状态转换
    3. 持有摄像头的步骤（AwaitingCamera）结束时释放摄像头
    4. 调用诊断服务，并用尝试令牌丢弃过期结果

    线程模型：单线程 + 协程挂起（不支持多线程并发调用）。
    任何失败都落到某个明确的状态上，异常不会越过事件处理函数。
    """

    def __init__(self, diagnosis_client, camera_manager,
                 description: str = DEFAULT_DESCRIPTION,
                 log_dir: Optional[str] = "logs"):
        """
        Args:
            diagnosis_client: 提供 async diagnose(request) 的客户端
            camera_manager: CameraManager 实例
            description: 请求附带的描述
            log_dir: 日志目录
        """
        self._client = diagnosis_client
        self._camera = camera_manager
        self.description = description
        self.logger = Logger(log_dir)

        self._state = AcquisitionState()
        self._attempts = itertools.count(1)
        self._listeners: List[Callable[[AcquisitionState], None]] = []
        self._notice_listeners: List[Callable[[Notice], None]] = []

        self._handlers = {
            ChooseUpload: self._on_choose_upload,
            ChooseCamera: self._on_choose_camera,
            FileSelected: self._on_file_selected,
            CaptureConfirmed: self._on_capture_confirmed,
            Reset: self._on_reset,
        }

    @property
    def state(self) -> AcquisitionState:
        return self._state

    # ==================== 订阅 ====================

    def subscribe(self, listener: Callable[[AcquisitionState], None]) -> Callable[[], None]:
        """订阅状态变化，返回取消订阅函数"""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def on_notice(self, listener: Callable[[Notice], None]) -> Callable[[], None]:
        """订阅一次性提示，返回取消订阅函数"""
        self._notice_listeners.append(listener)

        def unsubscribe():
            if listener in self._notice_listeners:
                self._notice_listeners.remove(listener)

        return unsubscribe

    # ==================== 事件入口 ====================

    async def dispatch(self, event) -> AcquisitionState:
        """按到达顺序处理事件

        Returns:
            处理后的状态
        """
        handler = self._handlers.get(type(event))
        if handler is None:
            raise TypeError(f"未知事件: {event!r}")

        outcome = handler(event)
        if inspect.isawaitable(outcome):
            await outcome
        return self._state

    async def choose_upload(self) -> AcquisitionState:
        return await self.dispatch(ChooseUpload())

    async def choose_camera(self) -> AcquisitionState:
        return await self.dispatch(ChooseCamera())

    async def file_selected(self, data: bytes, media_type: Optional[str] = None) -> AcquisitionState:
        return await self.dispatch(FileSelected(data=data, media_type=media_type))

    async def capture(self) -> AcquisitionState:
        return await self.dispatch(CaptureConfirmed())

    def reset(self) -> AcquisitionState:
        """重新开始（任何状态下都有效，同步执行）"""
        self._on_reset(Reset())
        return self._state

    def close(self):
        """会话结束，释放摄像头"""
        self._camera.release()

    # ==================== 事件处理 ====================

    def _on_choose_upload(self, event: ChooseUpload):
        if not self._expect(AcquisitionStep.INITIAL, event):
            return
        self._transition(step=AcquisitionStep.AWAITING_UPLOAD)

    async def _on_choose_camera(self, event: ChooseCamera):
        if not self._expect(AcquisitionStep.INITIAL, event):
            return

        token = next(self._attempts)
        self._transition(step=AcquisitionStep.AWAITING_CAMERA,
                         camera_permission=CameraPermission.UNKNOWN,
                         attempt=token)

        try:
            permission = await self._camera.request_access()
        except Exception as e:
            self.logger.log("acquisition", "error", f"申请摄像头异常: {e!r}")
            # 离开 AwaitingCamera 时释放摄像头；过期的申请已由 reset 释放
            if self._is_current(token, AcquisitionStep.AWAITING_CAMERA):
                self._transition(step=AcquisitionStep.INITIAL)
                self._emit_notice(CAMERA_UNAVAILABLE_NOTICE)
            return

        if not self._is_current(token, AcquisitionStep.AWAITING_CAMERA):
            self.logger.log("acquisition", "info", f"摄像头申请结果已过期，忽略 (attempt={token})")
            return

        if permission is CameraPermission.GRANTED:
            self._transition(camera_permission=CameraPermission.GRANTED)
            return

        if permission is CameraPermission.UNKNOWN:
            # 申请期间摄像头被 close() 释放
            self._transition(step=AcquisitionStep.INITIAL)
            return

        # 权限被拒绝：回到 Initial（离开 AwaitingCamera 时释放摄像头）
        self.logger.log("acquisition", "warning", "摄像头权限被拒绝，回到初始状态")
        self._transition(step=AcquisitionStep.INITIAL, camera_permission=CameraPermission.DENIED)
        self._emit_notice(CAMERA_DENIED_NOTICE)

    async def _on_file_selected(self, event: FileSelected):
        if not self._expect(AcquisitionStep.AWAITING_UPLOAD, event):
            return

        try:
            payload = image_to_data_uri(event.data, event.media_type)
        except SchemaValidationError as e:
            self.logger.log("acquisition", "error", f"上传的文件无法使用: {e}")
            self._fail(INVALID_IMAGE_MESSAGE)
            return

        await self._submit(payload)

    async def _on_capture_confirmed(self, event: CaptureConfirmed):
        if not self._expect(AcquisitionStep.AWAITING_CAMERA, event):
            return

        if self._state.camera_permission is not CameraPermission.GRANTED:
            self.logger.log("acquisition", "warning", "摄像头尚未就绪，忽略截图")
            return

        try:
            payload = self._camera.capture_frame()
        except CameraCaptureError as e:
            self.logger.log("acquisition", "error", f"截图失败: {e}")
            self._fail(CAPTURE_FAILED_MESSAGE)
            return

        await self._submit(payload)

    def _on_reset(self, event: Reset):
        self._camera.release()
        self._set_state(AcquisitionState(attempt=next(self._attempts)))

    # ==================== 诊断 ====================

    async def _submit(self, payload: str):
        """进入 Submitting 并调用诊断服务"""
        # 请求本身不合法时不进入 Submitting
        try:
            request = build_request(payload, self.description)
        except SchemaValidationError as e:
            self.logger.log("acquisition", "error", f"请求校验失败: {e}", field=e.field)
            self._fail(INVALID_IMAGE_MESSAGE)
            return

        token = next(self._attempts)
        self._transition(step=AcquisitionStep.SUBMITTING,
                         image_payload=payload,
                         result=None,
                         error_message=None,
                         attempt=token)

        result = None
        error_message = None
        try:
            result = await self._client.diagnose(request)
        except SchemaValidationError as e:
            self.logger.log("acquisition", "error", f"结构校验失败: {e}", field=e.field)
            error_message = INVALID_RESPONSE_MESSAGE
        except DiagnosisServiceError as e:
            self.logger.log("acquisition", "error", f"诊断服务失败: {e}",
                            status_code=e.status_code)
            error_message = f"{ANALYSIS_FAILED_PREFIX} {e}"
        except PlantNotRecognizedError:
            error_message = NOT_A_PLANT_MESSAGE
        except Exception as e:
            self.logger.log("acquisition", "error", f"诊断异常: {e!r}")
            error_message = UNKNOWN_ERROR_MESSAGE

        if not self._is_current(token, AcquisitionStep.SUBMITTING):
            self.logger.log("acquisition", "info",
                            f"丢弃过期的诊断结果 (attempt={token}, current={self._state.attempt})")
            return

        if error_message is None and result is None:
            error_message = UNKNOWN_ERROR_MESSAGE
        elif error_message is None and not result.is_plant:
            error_message = NOT_A_PLANT_MESSAGE

        if error_message is not None:
            self._fail(error_message)
            if error_message != NOT_A_PLANT_MESSAGE:
                self._emit_notice(Notice(NoticeLevel.DANGER, ANALYSIS_FAILED_TITLE, error_message))
            return

        self._transition(step=AcquisitionStep.SUCCEEDED, result=result)

    # ==================== 内部工具 ====================

    def _expect(self, step: AcquisitionStep, event) -> bool:
        if self._state.step is step:
            return True
        self.logger.log("acquisition", "warning",
                        f"事件 {type(event).__name__} 在 {self._state.step.value} 状态下无效，已忽略")
        return False

    def _is_current(self, token: int, step: AcquisitionStep) -> bool:
        return self._state.attempt == token and self._state.step is step

    def _fail(self, message: str):
        self._transition(step=AcquisitionStep.FAILED, result=None, error_message=message)

    def _transition(self, **changes):
        self._set_state(replace(self._state, **changes))

    def _set_state(self, new_state: AcquisitionState):
        """唯一的状态写入点"""
        old_state = self._state

        # 离开 AwaitingCamera（任何路径）都释放摄像头
        if (old_state.step is AcquisitionStep.AWAITING_CAMERA
                and new_state.step is not AcquisitionStep.AWAITING_CAMERA):
            self._camera.release()

        self._state = new_state

        if old_state.step is not new_state.step:
            self.logger.log("acquisition", "info",
                            f"{old_state.step.value} -> {new_state.step.value}",
                            attempt=new_state.attempt)

        for listener in list(self._listeners):
            try:
                listener(new_state)
            except Exception as e:
                self.logger.log("acquisition", "error", f"状态监听器异常: {e!r}")

    def _emit_notice(self, notice: Notice):
        for listener in list(self._notice_listeners):
            try:
                listener(notice)
            except Exception as e:
                self.logger.log("acquisition", "error", f"提示监听器异常: {e!r}")


# ==================== 工厂函数 ====================

def create_acquisition_machine(app_config: Optional[Config] = None,
                               transport=None,
                               device_factory=None) -> AcquisitionStateMachine:
    """按配置创建状态机（每个会话一个）

    Args:
        app_config: 配置，默认使用全局 config
        transport: 诊断客户端的 httpx transport
        device_factory: 摄像头设备工厂
    """
    app_config = app_config or common.config
    log_dir = str(app_config.log_dir) if app_config.log_dir else None
    client = create_diagnosis_client(app_config.diagnosis, log_dir=log_dir, transport=transport)
    camera = create_camera_manager(app_config.camera, log_dir=log_dir, device_factory=device_factory)

    return AcquisitionStateMachine(client, camera,
                                   description=app_config.description,
                                   log_dir=log_dir)
