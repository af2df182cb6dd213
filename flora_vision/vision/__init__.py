"""
Vision 模块 - 摄像头资源管理

┌─────────────────────────────────────┐
│  AcquisitionStateMachine            │  ← AwaitingCamera 步骤持有摄像头
├─────────────────────────────────────┤
│  CameraManager                      │
│  - request_access()                 │  ← Idle -> RequestingPermission -> Streaming / PermissionDenied
│  - capture_frame()                  │  ← Streaming -> CaptureRequested
│  - release()                        │  ← 幂等，离开步骤时必定调用
└─────────────────────────────────────┘
"""

from .camera_manager import (
    CameraManager,
    CameraPermission,
    CameraState,
    create_camera_manager,
)

__all__ = [
    'CameraManager',
    'CameraPermission',
    'CameraState',
    'create_camera_manager',
]
