"""
获取流程的状态与事件
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from flora_vision.ai.schemas import DiagnosisResult
from flora_vision.vision.camera_manager import CameraPermission


class AcquisitionStep(Enum):
    """当前步骤（同一时刻只有一个）"""
    INITIAL = "initial"
    AWAITING_UPLOAD = "awaiting_upload"
    AWAITING_CAMERA = "awaiting_camera"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class AcquisitionState:
    """状态快照（只读，渲染层读取）

    - result 只在 SUCCEEDED 时存在
    - error_message 只在 FAILED 时存在
    - attempt: 当前尝试令牌，过期的诊断结果不会被应用
    """
    step: AcquisitionStep = AcquisitionStep.INITIAL
    image_payload: Optional[str] = None
    result: Optional[DiagnosisResult] = None
    error_message: Optional[str] = None
    camera_permission: CameraPermission = CameraPermission.UNKNOWN
    attempt: int = 0

    def __post_init__(self):
        if self.result is not None and self.step is not AcquisitionStep.SUCCEEDED:
            raise ValueError(f"result 只能出现在 succeeded 状态: {self.step.value}")
        if self.error_message is not None and self.step is not AcquisitionStep.FAILED:
            raise ValueError(f"error_message 只能出现在 failed 状态: {self.step.value}")
        if self.step is AcquisitionStep.SUBMITTING and not self.image_payload:
            raise ValueError("submitting 状态必须带有 image_payload")


class NoticeLevel(Enum):
    """提示级别"""
    INFO = "info"
    WARNING = "warning"
    DANGER = "danger"


@dataclass(frozen=True)
class Notice:
    """一次性提示（不属于状态，类似 toast）"""
    level: NoticeLevel
    title: str
    message: str


# ==================== 事件 ====================

@dataclass(frozen=True)
class ChooseUpload:
    """选择上传图片"""


@dataclass(frozen=True)
class ChooseCamera:
    """选择使用摄像头"""


@dataclass(frozen=True)
class FileSelected:
    """已选中文件"""
    data: bytes
    media_type: Optional[str] = None  # 为空时自动识别


@dataclass(frozen=True)
class CaptureConfirmed:
    """确认截图"""


@dataclass(frozen=True)
class Reset:
    """重新开始"""
