"""
Serviço da história: monta prompts, chama os proxies e valida as respostas
"""

from typing import Any, Dict, List, Optional
import json
import logging

from pydantic import ValidationError as SchemaError

from models.image_shapes import resolve_image_url
from models.story_models import StoryResponse
from prompt.prompt_manager import PromptManager, get_prompt_manager
from providers.gemini_proxy import ProxyHandler
from services.exceptions import (
    ImageGenerationError,
    UpstreamError,
    ValidationError,
)

logger = logging.getLogger(__name__)


class StoryService:
    """startStory / continueStory / generateImage sobre os proxies"""

    def __init__(
        self,
        text_handler: ProxyHandler,
        image_handler: ProxyHandler,
        prompt_manager: Optional[PromptManager] = None,
        text_model: str = "gemini-2.5-flash",
        image_model: str = "imagen-4.0-generate-001",
        temperature: float = 0.8,
        image_mime_type: str = "image/jpeg",
        aspect_ratio: str = "4:3",
    ):
        self.text_handler = text_handler
        self.image_handler = image_handler
        self.prompt_manager = prompt_manager or get_prompt_manager()
        self.text_model = text_model
        self.image_model = image_model
        self.temperature = temperature
        self.image_mime_type = image_mime_type
        self.aspect_ratio = aspect_ratio

    @classmethod
    def from_settings(cls, settings, text_handler: ProxyHandler, image_handler: ProxyHandler) -> "StoryService":
        return cls(
            text_handler,
            image_handler,
            text_model=settings.GEMINI_TEXT_MODEL,
            image_model=settings.GEMINI_IMAGE_MODEL,
            temperature=settings.STORY_TEMPERATURE,
            image_mime_type=settings.IMAGE_MIME_TYPE,
            aspect_ratio=settings.IMAGE_ASPECT_RATIO,
        )

    async def start_story(self, seed_prompt: str) -> StoryResponse:
        prompt = self.prompt_manager.create_start_prompt(seed_prompt)
        return await self._generate_content_with_schema(prompt)

    async def continue_story(self, history: List[str]) -> StoryResponse:
        prompt = self.prompt_manager.create_continuation_prompt(history)
        return await self._generate_content_with_schema(prompt)

    async def generate_image(self, story_text: str) -> str:
        payload = {
            "model": self.image_model,
            "prompt": self.prompt_manager.create_image_prompt(story_text),
            "config": {
                "numberOfImages": 1,
                "outputMimeType": self.image_mime_type,
                "aspectRatio": self.aspect_ratio,
            },
        }

        result = await self.image_handler.forward(payload)
        if not result.ok:
            logger.warning(f"Proxy de imagem falhou: {result.status_code} {result.body}")
            raise ImageGenerationError(
                f"Erro no proxy de imagem: {result.status_code} {result.body}",
                status_code=result.status_code,
            )

        try:
            return resolve_image_url(result.body, self.image_mime_type)
        except ImageGenerationError as e:
            logger.warning(f"Resposta de imagem não reconhecida: {e}")
            raise

    def build_text_payload(self, prompt: str) -> Dict[str, Any]:
        return {
            "model": self.text_model,
            "contents": prompt,
            "config": {
                "responseMimeType": "application/json",
                "responseSchema": self.prompt_manager.get_response_schema(),
                "temperature": self.temperature,
            },
        }

    async def _generate_content_with_schema(self, prompt: str) -> StoryResponse:
        result = await self.text_handler.forward(self.build_text_payload(prompt))

        if not result.ok:
            logger.warning(f"Proxy de conteúdo falhou: {result.status_code} {result.body}")
            raise UpstreamError(result.status_code, result.body)

        data = self._extract_story_object(result.body)

        try:
            return StoryResponse.model_validate(data)
        except SchemaError as e:
            logger.warning(f"Estrutura de resposta inválida: {e.error_count()} erro(s)")
            raise ValidationError(f"Estrutura de resposta inválida vinda do proxy: {e}") from e

    @staticmethod
    def _extract_story_object(body: Any) -> Any:
        """Desembrulha o envelope generateContent, se houver"""
        if not isinstance(body, dict) or "candidates" not in body:
            return body

        try:
            parts = body["candidates"][0]["content"]["parts"]
            text = "".join(part.get("text", "") for part in parts)
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise ValidationError(f"Envelope generateContent sem texto: {e}") from e

        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            logger.error(f"JSON parsing falhou: {e}")
            logger.error(f"  conteúdo original: {text[:200]}")
            raise ValidationError(f"Texto do modelo não é JSON: {e}") from e
