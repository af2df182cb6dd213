"""
异常定义

状态机负责把这些异常映射为 Failed / Initial 状态，异常本身不会越过状态机边界。
"""
from typing import Optional


class FloraVisionError(Exception):
    """所有错误的基类"""


class SchemaValidationError(FloraVisionError):
    """请求或响应结构不合法（不可重试）"""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class DiagnosisServiceError(FloraVisionError):
    """诊断服务调用失败（网络/服务端错误，调用方可重试）"""

    retryable = True

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class PlantNotRecognizedError(FloraVisionError):
    """响应结构正确，但图片中不是植物"""


class CameraError(FloraVisionError):
    """摄像头错误基类"""


class CameraPermissionError(CameraError):
    """无法获得摄像头（权限被拒绝或设备不可用）"""


class CameraCaptureError(CameraError):
    """截图失败，或在非 Streaming 状态下截图"""
