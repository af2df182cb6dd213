"""
Acquisition 模块 - 图片获取到诊断结果的状态机

渲染层只做两件事：
1. subscribe() 读取 AcquisitionState 并重绘
2. 把四个用户操作（选择文件 / 打开摄像头 / 截图 / 重新开始）作为事件发回

使用示例：
```python
from flora_vision.acquisition import create_acquisition_machine, AcquisitionStep

machine = create_acquisition_machine()
machine.subscribe(lambda state: print(state.step))

await machine.choose_upload()
state = await machine.file_selected(image_bytes)
if state.step is AcquisitionStep.SUCCEEDED:
    print(state.result.identification.common_name)
else:
    print(state.error_message)

machine.reset()
```
"""

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
from .machine import AcquisitionStateMachine, create_acquisition_machine

__all__ = [
    # 状态
    'AcquisitionState',
    'AcquisitionStep',
    'Notice',
    'NoticeLevel',

    # 事件
    'ChooseUpload',
    'ChooseCamera',
    'FileSelected',
    'CaptureConfirmed',
    'Reset',

    # 状态机
    'AcquisitionStateMachine',
    'create_acquisition_machine',
]
