"""
Controlador de estado da tela: registro da história + estado marcado
"""

from collections import OrderedDict
from typing import Dict, List, Optional
import logging
import time
import uuid

from models.story_models import (
    AwaitingChoice,
    Error,
    Idle,
    Loading,
    SessionState,
    StoryPart,
)
from prompt.prompt_manager import SEED_IMAGE_URL, SEED_SCENE_TEXT
from services.exceptions import (
    UNKNOWN_FAILURE_MESSAGE,
    InvalidTransitionError,
    StoryError,
)
from services.story_service import StoryService

logger = logging.getLogger(__name__)

CHOICE_ECHO_PREFIX = "> Você escolheu: "


class StorySession:
    """Uma sessão de leitura: Idle -> Loading -> AwaitingChoice | Error"""

    def __init__(
        self,
        story_service: StoryService,
        seed_text: str = SEED_SCENE_TEXT,
        seed_image_url: str = SEED_IMAGE_URL,
        session_id: Optional[str] = None,
    ):
        self.story_service = story_service
        self.seed = StoryPart(text=seed_text, image_url=seed_image_url)
        self.session_id = session_id or uuid.uuid4().hex
        self.transcript: List[StoryPart] = []
        self.state: SessionState = Idle()
        # Incrementa a cada reset; respostas de uma geração anterior são descartadas
        self.generation = 0

    @property
    def is_loading(self) -> bool:
        return isinstance(self.state, Loading)

    @property
    def choices(self) -> List[str]:
        if isinstance(self.state, AwaitingChoice):
            return list(self.state.choices)
        return []

    @property
    def error(self) -> Optional[str]:
        if isinstance(self.state, Error):
            return self.state.message
        return None

    def history(self) -> List[str]:
        return [part.text for part in self.transcript]

    def _set_state(self, state: SessionState):
        logger.info(f"sessão {self.session_id[:8]}: {self.state.name} -> {state.name}")
        self.state = state

    def reset(self):
        """Descarta registro, escolhas e erro; deixa só a cena inicial"""
        self.generation += 1
        self.transcript = [self.seed]
        self._set_state(Loading())

    async def open_story(self):
        generation = self.generation
        try:
            response = await self.story_service.start_story(self.seed.text)
            image_url = await self.story_service.generate_image(response.story)
        except Exception as e:
            self._fail(e, generation)
            return

        self._commit(response.story, image_url, response.choices, generation)

    async def start(self):
        self.reset()
        await self.open_story()

    async def restart(self):
        await self.start()

    def select_choice(self, choice: str) -> List[str]:
        """Registra o eco da escolha e devolve o histórico completo"""
        if not isinstance(self.state, AwaitingChoice):
            raise InvalidTransitionError(f"Escolha ignorada no estado {self.state.name}.")
        if choice not in self.state.choices:
            raise InvalidTransitionError(f"Escolha desconhecida: {choice}")

        self._set_state(Idle())
        self.transcript.append(StoryPart(text=f"{CHOICE_ECHO_PREFIX}{choice}", is_choice=True))
        self._set_state(Loading())
        return self.history()

    async def advance(self, history: List[str]):
        generation = self.generation
        try:
            response = await self.story_service.continue_story(history)
            image_url = await self.story_service.generate_image(response.story)
        except Exception as e:
            self._fail(e, generation)
            return

        self._commit(response.story, image_url, response.choices, generation)

    async def choose(self, choice: str):
        history = self.select_choice(choice)
        await self.advance(history)

    def _is_stale(self, generation: int) -> bool:
        if generation != self.generation:
            logger.info(f"sessão {self.session_id[:8]}: resposta descartada após reinício")
            return True
        return False

    def _commit(self, story: str, image_url: str, choices: List[str], generation: int):
        if self._is_stale(generation):
            return
        self.transcript.append(StoryPart(text=story, image_url=image_url))
        self._set_state(AwaitingChoice(list(choices)))

    def _fail(self, exc: Exception, generation: int):
        if isinstance(exc, StoryError):
            logger.warning(f"sessão {self.session_id[:8]}: {type(exc).__name__}: {exc}")
            message = exc.user_message
        else:
            logger.error(f"sessão {self.session_id[:8]}: erro inesperado: {exc}", exc_info=True)
            message = UNKNOWN_FAILURE_MESSAGE
        if self._is_stale(generation):
            return
        self._set_state(Error(message))

    def snapshot(self) -> Dict:
        return {
            "session_id": self.session_id,
            "state": self.state.name,
            "transcript": [part.to_dict() for part in self.transcript],
            "choices": self.choices,
            "is_loading": self.is_loading,
            "error": self.error,
        }


class SessionStore:
    """Sessões em memória por cookie, com expiração por inatividade e limite de tamanho"""

    def __init__(self, max_sessions: int = 1000, ttl: int = 3600):
        self.max_sessions = max_sessions
        self.ttl = ttl
        self._sessions = OrderedDict()

    def get(self, session_id: Optional[str]) -> Optional[StorySession]:
        if not session_id or session_id not in self._sessions:
            return None

        session, expire_time = self._sessions[session_id]
        if time.time() >= expire_time:
            del self._sessions[session_id]
            logger.info(f"sessão {session_id[:8]} expirada")
            return None

        self._sessions[session_id] = (session, time.time() + self.ttl)
        self._sessions.move_to_end(session_id)
        return session

    def create(self, story_service: StoryService) -> StorySession:
        self._evict()
        session = StorySession(story_service)
        self._sessions[session.session_id] = (session, time.time() + self.ttl)
        return session

    def _evict(self):
        """Remove expiradas e, se ainda cheio, as menos usadas"""
        now = time.time()
        expired = [sid for sid, (_, expire_time) in self._sessions.items() if now >= expire_time]
        for sid in expired:
            del self._sessions[sid]

        while self._sessions and len(self._sessions) >= self.max_sessions:
            sid, _ = self._sessions.popitem(last=False)
            logger.info(f"sessão {sid[:8]} removida (limite de {self.max_sessions})")

    def __len__(self) -> int:
        return len(self._sessions)
