import logging
from typing import Optional, Protocol

import httpx
from django.conf import settings
from rest_framework.exceptions import ValidationError

from common.exceptions import wrap_dependency_error

from .adapter import ClassificationResponse

logger = logging.getLogger(__name__)

MAX_INPUT_CHARS = 32_000


class ClassificationProvider(Protocol):
    def classify(self, text: str) -> ClassificationResponse:
        """raw text → {flagged, categories, category_scores}"""


def get_provider() -> ClassificationProvider:
    # settings 로 선택 (default: Dummy)
    name = getattr(settings, "SAFETY_CLASSIFIER_PROVIDER", "dummy")

    if name == "openai":
        return OpenAIModerationProvider()
    return DummyProvider()


class DummyProvider:
    def classify(self, text):
        # 테스트/개발용: 외부 호출 없이 항상 clean 응답
        return ClassificationResponse(flagged=False, categories={}, category_scores={})


class OpenAIModerationProvider:
    def __init__(self, *, api_key: Optional[str] = None, url: Optional[str] = None, timeout: Optional[float] = None, client: Optional[httpx.Client] = None):
        self.api_key = api_key or getattr(settings, "SAFETY_CLASSIFIER_API_KEY", "")
        if not self.api_key:
            raise RuntimeError("SAFETY_CLASSIFIER_API_KEY is not configured")
        self.url = url or getattr(settings, "SAFETY_CLASSIFIER_URL", "https://api.openai.com/v1/moderations")
        self.client = client or httpx.Client(timeout=timeout or getattr(settings, "SAFETY_CLASSIFIER_TIMEOUT", 10.0))

    def classify(self, text):
        text = (text or "")[:MAX_INPUT_CHARS]
        try:
            resp = self.client.post(self.url, json={"input": text}, headers={"Authorization": f"Bearer {self.api_key}"})
            resp.raise_for_status()
            return ClassificationResponse.from_payload(resp.json())
        except httpx.HTTPStatusError as e:
            logger.exception("Classification service returned %s", e.response.status_code)
            raise wrap_dependency_error("Failed to classify content", e) from e
        except httpx.RequestError as e:
            logger.exception("Classification service unreachable")
            raise wrap_dependency_error("Failed to classify content", e) from e
        except (ValueError, ValidationError) as e:
            # JSON 파싱 실패 또는 응답 형태 불일치
            logger.exception("Classification service returned a malformed response")
            raise wrap_dependency_error("Failed to classify content", e) from e
