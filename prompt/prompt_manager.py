"""
Templates fixos de prompt (uma substituição cada) e schema da resposta
"""

from typing import Any, Dict, List

SEED_IMAGE_URL = "https://storage.googleapis.com/generative-ai-story/hulk.png"
SEED_SCENE_TEXT = 'Hulk, enfurecido, acaba de esmagar um laptop em uma cidade em ruínas. Ele ruge, "HULK JÁ APAGOU TUDO E AINDA ESTÁ LENTO!"'

CHOICE_COUNT = 3

RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "story": {
            "type": "string",
            "description": "O próximo parágrafo da história. Deve ser dramático e envolvente, em estilo de quadrinhos. 2-4 frases.",
        },
        "choices": {
            "type": "array",
            "description": "Um array de exatamente três escolhas distintas e empolgantes para o usuário fazer a seguir.",
            "items": {"type": "string"},
        },
    },
    "required": ["story", "choices"],
}

START_TEMPLATE = """Você é um roteirista criativo criando uma história em quadrinhos interativa. Comece uma história baseada nesta cena: {scene}

Escreva um parágrafo de abertura que prepare o cenário. Em seguida, forneça exatamente três escolhas empolgantes para o que o Hulk deve fazer a seguir.

A história e as escolhas devem ser em português do Brasil.

Retorne sua resposta APENAS como um objeto JSON válido que corresponda ao schema definido."""

CONTINUE_TEMPLATE = """Você é um roteirista criativo continuando uma história em quadrinhos interativa.

Aqui está a história até agora:
---
{story_so_far}
---

Com base na última escolha do usuário, continue a história com um novo parágrafo curto e dramático (2-4 frases). Em seguida, forneça exatamente três novas escolhas distintas e empolgantes para o usuário fazer a seguir.

A história e as escolhas devem ser em português do Brasil.

Retorne sua resposta APENAS como um objeto JSON válido que corresponda ao schema definido."""

IMAGE_TEMPLATE = "Ilustração em estilo de painel de quadrinhos vintage da Marvel: {story}. Ação dramática e dinâmica, tintas fortes, cores de matriz de pontos, sem texto."


class PromptManager:
    """Monta os prompts de abertura, continuação e ilustração"""

    def __init__(self):
        self.templates = {
            "start": START_TEMPLATE,
            "continuation": CONTINUE_TEMPLATE,
            "image": IMAGE_TEMPLATE,
        }

    def create_start_prompt(self, scene: str) -> str:
        return self.templates["start"].format(scene=scene)

    def create_continuation_prompt(self, history: List[str]) -> str:
        """Todo o registro até agora, em ordem, separado por linha em branco"""
        return self.templates["continuation"].format(story_so_far="\n\n".join(history))

    def create_image_prompt(self, story_text: str) -> str:
        return self.templates["image"].format(story=story_text)

    @staticmethod
    def get_response_schema() -> Dict[str, Any]:
        return RESPONSE_SCHEMA


_prompt_manager = None


def get_prompt_manager() -> PromptManager:
    """Instância única do PromptManager"""
    global _prompt_manager
    if _prompt_manager is None:
        _prompt_manager = PromptManager()
    return _prompt_manager
