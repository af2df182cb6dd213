"""
AI 模块 - 植物诊断

架构：
┌─────────────────────────────────────┐
│     DiagnosisClient (服务客户端)     │  ← 唯一的外部调用 diagnose()
├─────────────────────────────────────┤
│     schemas (结构校验)               │  ← DiagnosisRequest / DiagnosisResult
├─────────────────────────────────────┤
│     data_uri (图片编码)              │  ← data:<mimetype>;base64,<data>
└─────────────────────────────────────┘

使用示例：
```python
from flora_vision.ai import create_diagnosis_client, build_request, image_to_data_uri
from flora_vision.common import config

client = create_diagnosis_client(config.diagnosis)

with open("monstera.jpg", "rb") as f:
    request = build_request(image_to_data_uri(f.read()), "An image of a plant.")

result = await client.diagnose(request)
print(result.identification.common_name, result.diagnosis.is_healthy)
```
"""

from .data_uri import (
    decode_data_uri,
    encode_data_uri,
    guess_media_type,
    image_to_data_uri,
)
from .schemas import (
    CareGuide,
    Diagnosis,
    DiagnosisRequest,
    DiagnosisResult,
    Identification,
    build_request,
    validate_request,
    validate_result,
)
from .diagnosis_client import DiagnosisClient, create_diagnosis_client

__all__ = [
    # 编码
    'encode_data_uri',
    'decode_data_uri',
    'guess_media_type',
    'image_to_data_uri',

    # 结构
    'DiagnosisRequest',
    'DiagnosisResult',
    'Identification',
    'Diagnosis',
    'CareGuide',
    'build_request',
    'validate_request',
    'validate_result',

    # 服务
    'DiagnosisClient',
    'create_diagnosis_client',
]
