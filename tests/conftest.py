"""
Configuração do pytest e fixtures comuns
"""
import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock
import sys
import os

# Caminho da raiz para importar os módulos do servidor
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from main import app, get_image_handler, get_session_store, get_story_service, get_text_handler
from providers.gemini_proxy import ProxyResult
from services.story_service import StoryService
from services.story_session import SessionStore


def make_handler(*results):
    """Proxy falso: forward() devolve os ProxyResult em sequência"""
    handler = AsyncMock()
    if len(results) == 1:
        handler.forward.return_value = results[0]
    else:
        handler.forward.side_effect = list(results)
    return handler


@pytest.fixture
def story_body():
    """Resposta de história já desembrulhada pelo proxy"""
    return {
        "story": "Hulk salta sobre os escombros e encara um exército de robôs.",
        "choices": [
            "Esmagar o primeiro robô",
            "Arremessar um carro",
            "Rugir para intimidar",
        ],
    }


@pytest.fixture
def next_story_body():
    return {
        "story": "O robô voa em pedaços e os outros recuam.",
        "choices": ["Perseguir", "Procurar o líder", "Descansar"],
    }


@pytest.fixture
def image_body():
    return {"generatedImages": [{"image": {"imageBytes": "QQ=="}}]}


@pytest.fixture
def text_handler(story_body):
    return make_handler(ProxyResult(200, story_body))


@pytest.fixture
def image_handler(image_body):
    return make_handler(ProxyResult(200, image_body))


@pytest.fixture
def story_service(text_handler, image_handler):
    return StoryService(text_handler, image_handler)


@pytest.fixture
def session_store():
    return SessionStore()


@pytest.fixture
def client(text_handler, image_handler, story_service, session_store):
    """TestClient com proxies e serviço substituídos"""
    app.dependency_overrides[get_text_handler] = lambda: text_handler
    app.dependency_overrides[get_image_handler] = lambda: image_handler
    app.dependency_overrides[get_story_service] = lambda: story_service
    app.dependency_overrides[get_session_store] = lambda: session_store
    yield TestClient(app)
    app.dependency_overrides.clear()
