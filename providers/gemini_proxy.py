"""
Proxies server-side para a API generativa do Google (texto e imagem)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional
import asyncio
import logging
import time

import aiohttp

from services.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

MISSING_KEY_ERROR = "API key não encontrada no servidor"


@dataclass
class ProxyResult:
    """Status e corpo JSON devolvidos ao chamador"""
    status_code: int
    body: Any

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class ProxyHandler(ABC):
    """Encaminha o corpo do chamador, sem alterações, para o endpoint upstream"""

    def __init__(self, api_key: Optional[str], url_template: str, default_model: str, timeout: float = 60.0):
        self.api_key = api_key
        self.url_template = url_template
        self.default_model = default_model
        self.timeout = timeout

    @abstractmethod
    def get_handler_name(self) -> str:
        pass

    def is_available(self) -> bool:
        return bool(self.api_key)

    def _require_api_key(self) -> str:
        if not self.is_available():
            raise ConfigurationError(MISSING_KEY_ERROR)
        return self.api_key

    def build_url(self, body: Dict[str, Any]) -> str:
        model = body.get("model") if isinstance(body, dict) else None
        return self.url_template.format(model=model or self.default_model)

    async def forward(self, body: Dict[str, Any]) -> ProxyResult:
        try:
            api_key = self._require_api_key()
        except ConfigurationError as e:
            logger.error(f"{self.get_handler_name()}: {e}")
            return ProxyResult(500, {"error": str(e)})

        url = self.build_url(body)

        try:
            start_time = time.time()
            status, data = await self._post(url, api_key, body)
            logger.info(f"{self.get_handler_name()} -> {status} ({time.time() - start_time:.2f}s)")
        except asyncio.TimeoutError:
            logger.error(f"{self.get_handler_name()}: timeout ({self.timeout}s)")
            return ProxyResult(500, {"error": f"Tempo esgotado após {self.timeout}s"})
        except aiohttp.ClientError as e:
            logger.error(f"{self.get_handler_name()}: erro de cliente HTTP {type(e).__name__}: {e}")
            return ProxyResult(500, {"error": str(e) or type(e).__name__})
        except ValueError as e:
            logger.error(f"{self.get_handler_name()}: corpo upstream não é JSON: {e}")
            return ProxyResult(500, {"error": str(e)})

        if not 200 <= status < 300:
            logger.warning(f"{self.get_handler_name()}: upstream respondeu {status}")
            return ProxyResult(status, data)

        return ProxyResult(status, self.normalize(data))

    async def _post(self, url: str, api_key: str, body: Dict[str, Any]):
        headers = {"Content-Type": "application/json"}
        timeout = aiohttp.ClientTimeout(total=self.timeout)

        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(url, params={"key": api_key}, headers=headers, json=body) as response:
                data = await response.json(content_type=None)
                return response.status, data

    def normalize(self, data: Any) -> Any:
        return data


class TextProxyHandler(ProxyHandler):
    """POST /api/proxy -> generateContent"""

    def get_handler_name(self) -> str:
        return f"TextProxy {self.default_model}"


class ImageProxyHandler(ProxyHandler):
    """POST /api/proxy-image -> predict"""

    def get_handler_name(self) -> str:
        return f"ImageProxy {self.default_model}"

    def normalize(self, data: Any) -> Any:
        # Envelope do Imagen {predictions: [{bytesBase64Encoded}]} -> {imageBase64}
        if isinstance(data, dict) and isinstance(data.get("predictions"), list) and data["predictions"]:
            first = data["predictions"][0]
            if isinstance(first, dict) and first.get("bytesBase64Encoded"):
                return {"imageBase64": first["bytesBase64Encoded"]}
        return data


def create_proxy_handlers(settings) -> Dict[str, ProxyHandler]:
    """Cria os dois proxies com a credencial injetada a partir de Settings"""
    return {
        "text": TextProxyHandler(
            api_key=settings.GEMINI_API_KEY,
            url_template=settings.GEMINI_TEXT_URL,
            default_model=settings.GEMINI_TEXT_MODEL,
            timeout=settings.UPSTREAM_TIMEOUT,
        ),
        "image": ImageProxyHandler(
            api_key=settings.GEMINI_API_KEY,
            url_template=settings.GEMINI_IMAGE_URL,
            default_model=settings.GEMINI_IMAGE_MODEL,
            timeout=settings.UPSTREAM_TIMEOUT,
        ),
    }
