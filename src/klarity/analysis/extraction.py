from __future__ import annotations

import time
from typing import Any, Dict, List, Optional

import httpx
from openai import APIConnectionError, APIStatusError, APITimeoutError, OpenAI

from ..config import DEFAULT_VISION_MODEL, Settings
from ..errors import AnalysisError
from ..logging import get_logger
from .parser import parse_model_reply


LOG = get_logger("analysis-extraction")

MAX_TOKENS = 1000

SYSTEM_PROMPT = """Tu es un expert en tarification dentaire française. Analyse cette image de devis.
Extrais chaque acte médical identifié.
Pour chaque acte, retourne un objet JSON avec :
- code (ex: HBLD038, si visible, sinon null)
- description (le libellé patient simplifié)
- price (le montant total de l'acte, en nombre)
- type (Soin, Prothèse, Implant, etc.)

Retourne UNIQUEMENT un JSON valide sous la forme : { "acts": [...] }. Pas de markdown."""

USER_PROMPT = "Analyse ce devis dentaire."

MOCK_ACTS: List[Dict[str, Any]] = [
    {"code": "HBLD038", "description": "Couronne céramique (Mock)", "price": 550, "type": "Prothèse"},
    {"code": "HBQK002", "description": "Radiographie panoramique (Mock)", "price": 21.28, "type": "Radio"},
]


def build_messages(image_url: str) -> List[Dict[str, Any]]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {
            "role": "user",
            "content": [
                {"type": "text", "text": USER_PROMPT},
                {"type": "image_url", "image_url": {"url": image_url}},
            ],
        },
    ]


class VisionQuoteAnalyzer:
    """Send a quote image to a vision chat model and return its JSON reply.

    `analyze(image)` accepts a data URL or a public image URL and returns the
    parsed object, normally ``{"acts": [...]}``. In mock mode no request is
    made and two fixed acts are returned.
    """

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: str = DEFAULT_VISION_MODEL,
        use_mock: bool = False,
        timeout: float = 120.0,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url
        self.model = model
        self.use_mock = use_mock
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "VisionQuoteAnalyzer":
        return cls(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            model=settings.vision_model,
            use_mock=settings.use_mock,
        )

    def _client(self) -> OpenAI:
        if not self.api_key:
            raise AnalysisError("OPENAI_API_KEY missing in env/.env; cannot analyse quotes")
        http_client = httpx.Client(
            timeout=httpx.Timeout(connect=10.0, read=90.0, write=30.0, pool=10.0),
            limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
        )
        return OpenAI(
            api_key=self.api_key,
            base_url=self.base_url,
            http_client=http_client,
            max_retries=0,
        )

    def analyze(self, image: str) -> Dict[str, Any]:
        if not image:
            raise AnalysisError("Image data is required")
        if self.use_mock:
            LOG.info("Mock mode active: returning fixed acts")
            return {"acts": [dict(a) for a in MOCK_ACTS]}

        client = self._client()
        t0 = time.perf_counter()
        try:
            LOG.info("Calling chat completions (vision) model='%s'…", self.model)
            completion = client.chat.completions.create(
                model=self.model,
                messages=build_messages(image),
                max_tokens=MAX_TOKENS,
                timeout=self.timeout,
            )
        except (APIConnectionError, APITimeoutError) as e:
            LOG.error("Network/timeout while calling OpenAI: %s", e)
            raise AnalysisError(f"Vision service unreachable: {e}") from e
        except APIStatusError as e:
            body = getattr(getattr(e, "response", None), "text", None)
            LOG.error(
                "OpenAI API returned %s. Body preview: %r",
                getattr(e, "status_code", "?"),
                body[:300] if body else None,
            )
            raise AnalysisError(f"Vision service error ({getattr(e, 'status_code', '?')})") from e
        finally:
            client.close()

        choice = completion.choices[0] if getattr(completion, "choices", None) else None
        content = choice.message.content if choice and getattr(choice, "message", None) else None
        usage = getattr(completion, "usage", None)
        usage_dict = {
            k: getattr(usage, k, None) if usage else None
            for k in ("prompt_tokens", "completion_tokens", "total_tokens")
        }
        LOG.info(
            "Chat completion finished in %.2fs id=%s usage=%s",
            time.perf_counter() - t0,
            getattr(completion, "id", None),
            usage_dict,
        )
        return parse_model_reply(content)
