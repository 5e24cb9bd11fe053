"""
Modelos da história: partes do registro, resposta do modelo e estados da sessão
"""

from dataclasses import dataclass, field
from typing import List, Optional, Union

from pydantic import BaseModel, Field


@dataclass(frozen=True)
class StoryPart:
    """Uma entrada do registro: parágrafo narrativo ou eco de escolha"""
    text: str
    image_url: Optional[str] = None
    is_choice: bool = False

    def to_dict(self) -> dict:
        return {"text": self.text, "image_url": self.image_url, "is_choice": self.is_choice}


class StoryResponse(BaseModel):
    """Contrato com o modelo upstream: {story, choices}"""
    story: str = Field(..., min_length=1, description="Próximo parágrafo da história")
    choices: List[str] = Field(..., min_length=1, description="Escolhas para o usuário (nominalmente três)")


# Estados da sessão (união marcada)

@dataclass(frozen=True)
class Idle:
    name: str = field(default="idle", init=False)


@dataclass(frozen=True)
class Loading:
    name: str = field(default="loading", init=False)


@dataclass(frozen=True)
class AwaitingChoice:
    choices: List[str]
    name: str = field(default="awaiting_choice", init=False)


@dataclass(frozen=True)
class Error:
    message: str
    name: str = field(default="error", init=False)


SessionState = Union[Idle, Loading, AwaitingChoice, Error]
