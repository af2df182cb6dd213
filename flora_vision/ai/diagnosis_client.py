"""
植物诊断服务客户端

基于 OpenAI 兼容的 chat/completions 接口（默认 Gemini）
"""
import json
from typing import Any, Dict, Optional

import httpx

from flora_vision.common import DiagnosisConfig, Logger
from flora_vision.errors import (
    DiagnosisServiceError,
    PlantNotRecognizedError,
    SchemaValidationError,
)
from .schemas import DiagnosisRequest, DiagnosisResult, validate_request, validate_result


class DiagnosisClient:
    """诊断服务客户端

    职责：
    1. 封装唯一一次外部诊断调用
    2. 发送前校验请求，返回前校验响应
    3. 把 HTTP / 网络错误转换为 DiagnosisServiceError

    不负责：
    - 重试（由调用方决定）
    - 缓存
    - "不是植物" 的业务判断（除非 require_plant=True）
    """

    def __init__(self, config: DiagnosisConfig,
                 log_dir: Optional[str] = "logs",
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Args:
            config: 诊断服务配置
            log_dir: 日志目录
            transport: 自定义 httpx transport（测试时注入 MockTransport）
        """
        self.config = config
        self.logger = Logger(log_dir)
        self._transport = transport

        self.logger.log("ai", "info", f"DiagnosisClient 初始化 - model: {config.model}")

    async def diagnose(self, request: DiagnosisRequest,
                       require_plant: bool = False) -> DiagnosisResult:
        """诊断植物

        Args:
            request: 诊断请求
            require_plant: 为 True 时，is_plant=False 抛出 PlantNotRecognizedError

        Returns:
            校验通过的 DiagnosisResult

        Raises:
            SchemaValidationError: 请求或响应结构不合法
            DiagnosisServiceError: 网络或服务端错误
            PlantNotRecognizedError: require_plant=True 且不是植物
        """
        # 1. 再次校验请求
        request = validate_request(request.to_dict())
        self.logger.log("ai", "info", f"开始诊断: {len(request.image_payload)} 字符")

        # 2. 调用 API
        content = await self._call_api(self._build_prompt(request.description),
                                       request.image_payload)

        # 3. 解析并校验响应
        try:
            result = validate_result(self._parse_content(content))
        except SchemaValidationError as e:
            self.logger.log("ai", "error", f"响应结构校验失败: {e}", field=e.field)
            raise

        self.logger.log("ai", "info",
                        f"诊断完成: is_plant={result.is_plant}, "
                        f"name={result.identification.common_name!r}")

        if require_plant and not result.is_plant:
            raise PlantNotRecognizedError("图片中没有识别到植物")

        return result

    def _build_prompt(self, description: str) -> str:
        """构建诊断 Prompt"""
        return f"""You are an expert botanist. Analyze the provided image and description to identify the plant, assess its health, and provide detailed information about it.

Your response must be in {self.config.language}.

1. Identification:
   - Determine if the image contains a plant. If not, set "isPlant" to false and leave other fields empty.
   - If it is a plant, identify its common and scientific name.
   - Determine its category (e.g., Fruit, Vegetable, Tree, Flower, Ornamental).

2. Diagnosis:
   - Assess the plant's health from the image.
   - Set "isHealthy" to true or false.
   - Provide a brief "healthDescription" explaining your assessment.

3. Care & Benefits:
   - Summarize the plant's benefits and common uses in "benefits".
   - Provide simple watering instructions in "watering".
   - Provide simple sunlight instructions in "sunlight".

Return only a JSON object of this shape:
{{
  "identification": {{"isPlant": bool, "commonName": str, "scientificName": str, "category": str}},
  "diagnosis": {{"isHealthy": bool, "healthDescription": str}},
  "care": {{"benefits": str, "watering": str, "sunlight": str}}
}}

Use the following as the primary source of information about the plant.

Description: {description}"""

    async def _call_api(self, prompt: str, photo_data_uri: str) -> str:
        """调用 chat/completions 接口

        Returns:
            模型返回的文本内容

        Raises:
            DiagnosisServiceError: 调用失败或响应信封格式错误
        """
        url = f"{self.config.base_url.rstrip('/')}/chat/completions"

        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json"
        }

        data = {
            "model": self.config.model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "text",
                            "text": prompt
                        },
                        {
                            "type": "image_url",
                            "image_url": {
                                "url": photo_data_uri
                            }
                        }
                    ]
                }
            ],
            "temperature": self.config.temperature,
            "response_format": {"type": "json_object"}
        }

        try:
            async with httpx.AsyncClient(timeout=self.config.timeout,
                                         transport=self._transport) as client:
                response = await client.post(url, json=data, headers=headers)
                response.raise_for_status()
                response_json = response.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            self.logger.log("ai", "error", f"诊断服务返回错误状态: {status}")
            raise DiagnosisServiceError(f"Layanan diagnosis mengembalikan status {status}.",
                                        status_code=status) from e
        except httpx.HTTPError as e:
            self.logger.log("ai", "error", f"诊断服务调用失败: {e}")
            raise DiagnosisServiceError(f"Tidak dapat menghubungi layanan diagnosis: {e}") from e
        except ValueError as e:
            self.logger.log("ai", "error", f"诊断服务响应不是 JSON: {e}")
            raise DiagnosisServiceError("Respons layanan diagnosis tidak dapat dibaca.") from e

        # 提取 AI 返回的内容
        try:
            content = response_json["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            self.logger.log("ai", "error", f"API 响应格式错误: {str(response_json)[:200]}")
            raise DiagnosisServiceError("Respons layanan diagnosis tidak lengkap.") from e

        if not isinstance(content, str):
            raise SchemaValidationError("choices.0.message.content", "必须是字符串")
        return content

    def _parse_content(self, content: str) -> Dict[str, Any]:
        """解析模型返回的 JSON 文本（容忍 ```json 代码块包裹）"""
        text = content.strip()
        if text.startswith("```"):
            text = text.strip("`")
            if text.lower().startswith("json"):
                text = text[4:]

        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            self.logger.log("ai", "warning", f"无法解析 JSON: {content[:100]}")
            raise SchemaValidationError("<root>", f"不是合法的 JSON: {e.msg}") from e


# ==================== 工厂函数 ====================

def create_diagnosis_client(config: DiagnosisConfig,
                            log_dir: Optional[str] = "logs",
                            transport: Optional[httpx.AsyncBaseTransport] = None) -> DiagnosisClient:
    """创建诊断服务客户端

    Args:
        config: 诊断服务配置
        log_dir: 日志目录
        transport: 自定义 httpx transport

    Returns:
        DiagnosisClient 实例
    """
    return DiagnosisClient(config, log_dir=log_dir, transport=transport)
