"""
Taxonomia de erros da história
"""

from typing import Any, Optional

STORY_FAILURE_MESSAGE = "Falha ao gerar a história. Verifique a função proxy e a chave do servidor."
IMAGE_FAILURE_MESSAGE = "Falha ao gerar a imagem da história. Verifique a função proxy e a chave do servidor."
UNKNOWN_FAILURE_MESSAGE = "Ocorreu um erro desconhecido."


class StoryError(Exception):
    """Base de todos os erros; user_message é o que a tela mostra"""

    user_message = UNKNOWN_FAILURE_MESSAGE


class ConfigurationError(StoryError):
    """Credencial do servidor ausente"""


class GenerationError(StoryError):
    """Falha na etapa de texto"""

    user_message = STORY_FAILURE_MESSAGE


class UpstreamError(GenerationError):
    """Status não-2xx vindo do proxy de conteúdo"""

    def __init__(self, status_code: int, body: Any = None):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Erro no proxy de conteúdo: {status_code} {body}")


class ValidationError(GenerationError):
    """Resposta estruturada malformada ou incompleta"""


class ImageGenerationError(StoryError):
    """Falha na etapa de imagem"""

    user_message = IMAGE_FAILURE_MESSAGE

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class UnsupportedShapeError(ImageGenerationError):
    """Nenhuma das três formas de resposta de imagem reconhecida"""

    def __init__(self, keys: Optional[list] = None):
        self.keys = keys or []
        super().__init__(f"Resposta inesperada do proxy de imagem. Campos: {self.keys}")


class InvalidTransitionError(StoryError):
    """Ação do usuário inválida para o estado atual"""
