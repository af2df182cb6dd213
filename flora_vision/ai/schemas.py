"""
请求 / 响应结构定义与校验

纯函数，不做任何 I/O。字段名在 Python 侧为 snake_case，
线上格式（to_dict / validate_*）为 camelCase。
"""
from dataclasses import dataclass
from typing import Any, Dict, Mapping

from flora_vision.errors import SchemaValidationError
from .data_uri import decode_data_uri


@dataclass(frozen=True)
class DiagnosisRequest:
    """诊断请求"""
    image_payload: str  # data:<mimetype>;base64,<data>
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "photoDataUri": self.image_payload,
            "description": self.description
        }


@dataclass(frozen=True)
class Identification:
    is_plant: bool
    common_name: str
    scientific_name: str
    category: str  # Fruit / Vegetable / Tree / Flower / Ornamental ...


@dataclass(frozen=True)
class Diagnosis:
    is_healthy: bool
    health_description: str


@dataclass(frozen=True)
class CareGuide:
    benefits: str
    watering: str
    sunlight: str


@dataclass(frozen=True)
class DiagnosisResult:
    """诊断结果

    identification.is_plant 为 False 时，其余字段没有意义。
    """
    identification: Identification
    diagnosis: Diagnosis
    care: CareGuide

    @property
    def is_plant(self) -> bool:
        return self.identification.is_plant

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identification": {
                "isPlant": self.identification.is_plant,
                "commonName": self.identification.common_name,
                "scientificName": self.identification.scientific_name,
                "category": self.identification.category
            },
            "diagnosis": {
                "isHealthy": self.diagnosis.is_healthy,
                "healthDescription": self.diagnosis.health_description
            },
            "care": {
                "benefits": self.care.benefits,
                "watering": self.care.watering,
                "sunlight": self.care.sunlight
            }
        }


# ==================== 字段校验 ====================

def _require_object(raw: Any, path: str) -> Mapping[str, Any]:
    if not isinstance(raw, Mapping):
        raise SchemaValidationError(path or "<root>", "必须是对象")
    return raw


def _require_string(obj: Mapping[str, Any], key: str, path: str) -> str:
    field = f"{path}.{key}" if path else key
    if key not in obj:
        raise SchemaValidationError(field, "缺少字段")
    value = obj[key]
    # 允许空字符串，不允许缺失或非字符串
    if not isinstance(value, str):
        raise SchemaValidationError(field, "必须是字符串")
    return value


def _require_bool(obj: Mapping[str, Any], key: str, path: str) -> bool:
    field = f"{path}.{key}" if path else key
    if key not in obj:
        raise SchemaValidationError(field, "缺少字段")
    value = obj[key]
    if not isinstance(value, bool):
        raise SchemaValidationError(field, "必须是布尔值")
    return value


def _require_section(obj: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    if key not in obj:
        raise SchemaValidationError(key, "缺少字段")
    return _require_object(obj[key], key)


# ==================== 对外接口 ====================

def validate_request(raw: Any) -> DiagnosisRequest:
    """校验诊断请求

    Raises:
        SchemaValidationError: 字段缺失或格式不合法
    """
    obj = _require_object(raw, "")
    image_payload = _require_string(obj, "photoDataUri", "")
    _, data = decode_data_uri(image_payload, field="photoDataUri")
    if not data:
        raise SchemaValidationError("photoDataUri", "图片数据为空")

    return DiagnosisRequest(
        image_payload=image_payload,
        description=_require_string(obj, "description", "")
    )


def validate_result(raw: Any) -> DiagnosisResult:
    """校验诊断结果

    Raises:
        SchemaValidationError: 字段缺失或类型不符
    """
    obj = _require_object(raw, "")

    identification = _require_section(obj, "identification")
    diagnosis = _require_section(obj, "diagnosis")
    care = _require_section(obj, "care")

    return DiagnosisResult(
        identification=Identification(
            is_plant=_require_bool(identification, "isPlant", "identification"),
            common_name=_require_string(identification, "commonName", "identification"),
            scientific_name=_require_string(identification, "scientificName", "identification"),
            category=_require_string(identification, "category", "identification")
        ),
        diagnosis=Diagnosis(
            is_healthy=_require_bool(diagnosis, "isHealthy", "diagnosis"),
            health_description=_require_string(diagnosis, "healthDescription", "diagnosis")
        ),
        care=CareGuide(
            benefits=_require_string(care, "benefits", "care"),
            watering=_require_string(care, "watering", "care"),
            sunlight=_require_string(care, "sunlight", "care")
        )
    )


def build_request(image_payload: str, description: str) -> DiagnosisRequest:
    """构造并校验诊断请求"""
    return validate_request({
        "photoDataUri": image_payload,
        "description": description
    })
