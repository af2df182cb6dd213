import json
import unittest

import httpx

from flora_vision.ai.data_uri import encode_data_uri
from flora_vision.ai.diagnosis_client import DiagnosisClient
from flora_vision.ai.schemas import DiagnosisRequest, build_request
from flora_vision.common import DiagnosisConfig
from flora_vision.errors import (
    DiagnosisServiceError,
    PlantNotRecognizedError,
    SchemaValidationError,
)

from tests.fakes import image_bytes, sample_result_dict


def completion(content) -> dict:
    return {"choices": [{"index": 0, "message": {"role": "assistant", "content": content}}]}


class DiagnosisClientTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.config = DiagnosisConfig(api_key="test-key", base_url="https://llm.example.test/v1/",
                                      model="vision-model", language="Bahasa Indonesia")
        self.photo = encode_data_uri(image_bytes(), "image/png")
        self.request = build_request(self.photo, "Daun menguning sejak minggu lalu.")
        self.calls = []

    def client_returning(self, response_factory) -> DiagnosisClient:
        def handler(request: httpx.Request) -> httpx.Response:
            self.calls.append(request)
            return response_factory(request)

        return DiagnosisClient(self.config, log_dir=None, transport=httpx.MockTransport(handler))

    async def test_diagnose_returns_validated_result(self) -> None:
        client = self.client_returning(
            lambda request: httpx.Response(200, json=completion(json.dumps(sample_result_dict())))
        )
        result = await client.diagnose(self.request)

        self.assertEqual(result.identification.common_name, "Monstera")
        self.assertEqual(len(self.calls), 1)

        sent = self.calls[0]
        self.assertEqual(str(sent.url), "https://llm.example.test/v1/chat/completions")
        self.assertEqual(sent.headers["Authorization"], "Bearer test-key")

        body = json.loads(sent.content)
        self.assertEqual(body["model"], "vision-model")
        self.assertEqual(body["response_format"], {"type": "json_object"})
        text_part, image_part = body["messages"][0]["content"]
        self.assertIn("Daun menguning sejak minggu lalu.", text_part["text"])
        self.assertIn("Bahasa Indonesia", text_part["text"])
        self.assertEqual(image_part["image_url"]["url"], self.photo)

    async def test_fenced_json_content_is_accepted(self) -> None:
        content = "```json\n" + json.dumps(sample_result_dict()) + "\n```"
        client = self.client_returning(lambda request: httpx.Response(200, json=completion(content)))
        result = await client.diagnose(self.request)
        self.assertTrue(result.is_plant)

    async def test_not_a_plant_is_returned_by_default(self) -> None:
        client = self.client_returning(
            lambda request: httpx.Response(200, json=completion(json.dumps(sample_result_dict(False))))
        )
        result = await client.diagnose(self.request)
        self.assertFalse(result.is_plant)

    async def test_require_plant_raises_domain_error(self) -> None:
        client = self.client_returning(
            lambda request: httpx.Response(200, json=completion(json.dumps(sample_result_dict(False))))
        )
        with self.assertRaises(PlantNotRecognizedError):
            await client.diagnose(self.request, require_plant=True)

    async def test_http_error_status_is_service_error(self) -> None:
        client = self.client_returning(lambda request: httpx.Response(503, json={"error": "overloaded"}))
        with self.assertRaises(DiagnosisServiceError) as ctx:
            await client.diagnose(self.request)
        self.assertEqual(ctx.exception.status_code, 503)
        self.assertTrue(ctx.exception.retryable)

    async def test_transport_failure_is_service_error(self) -> None:
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = self.client_returning(refuse)
        with self.assertRaises(DiagnosisServiceError) as ctx:
            await client.diagnose(self.request)
        self.assertIsNone(ctx.exception.status_code)

    async def test_envelope_without_choices_is_service_error(self) -> None:
        client = self.client_returning(lambda request: httpx.Response(200, json={"id": "x"}))
        with self.assertRaises(DiagnosisServiceError):
            await client.diagnose(self.request)

    async def test_non_json_content_is_validation_error(self) -> None:
        client = self.client_returning(
            lambda request: httpx.Response(200, json=completion("Ini adalah tanaman monstera."))
        )
        with self.assertRaises(SchemaValidationError):
            await client.diagnose(self.request)

    async def test_wrong_shape_is_validation_error(self) -> None:
        raw = sample_result_dict()
        raw["diagnosis"]["isHealthy"] = "yes"
        client = self.client_returning(lambda request: httpx.Response(200, json=completion(json.dumps(raw))))
        with self.assertRaises(SchemaValidationError) as ctx:
            await client.diagnose(self.request)
        self.assertEqual(ctx.exception.field, "diagnosis.isHealthy")

    async def test_malformed_request_is_rejected_before_calling(self) -> None:
        client = self.client_returning(lambda request: httpx.Response(200, json=completion("{}")))
        with self.assertRaises(SchemaValidationError):
            await client.diagnose(DiagnosisRequest(image_payload="not-a-data-uri", description="x"))
        self.assertEqual(self.calls, [])


if __name__ == "__main__":
    unittest.main()
