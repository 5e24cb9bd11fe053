from fastapi import BackgroundTasks, Depends, FastAPI, Form, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from typing import Any, Dict, Optional
from pathlib import Path
import logging
from datetime import datetime

from config.settings import get_settings
from providers.gemini_proxy import ProxyHandler, create_proxy_handlers
from services.exceptions import InvalidTransitionError
from services.story_service import StoryService
from services.story_session import SessionStore, StorySession

settings = get_settings()

logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
logger = logging.getLogger(__name__)

SESSION_COOKIE = "story_session"

app = FastAPI(
    title="A Fúria do Hulk",
    description="História em quadrinhos interativa com proxies Gemini",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))

proxy_handlers = create_proxy_handlers(settings)
story_service = StoryService.from_settings(settings, proxy_handlers["text"], proxy_handlers["image"])
session_store = SessionStore(max_sessions=settings.MAX_SESSIONS, ttl=settings.SESSION_TTL)

for warning in settings.validate_settings():
    logger.warning(warning)


def get_text_handler() -> ProxyHandler:
    return proxy_handlers["text"]


def get_image_handler() -> ProxyHandler:
    return proxy_handlers["image"]


def get_story_service() -> StoryService:
    return story_service


def get_session_store() -> SessionStore:
    return session_store


def _current_session(request: Request, store: SessionStore) -> Optional[StorySession]:
    return store.get(request.cookies.get(SESSION_COOKIE))


@app.get("/health")
async def health_check():
    """Verificação de saúde"""
    return {
        "status": "healthy",
        "gemini_configured": settings.is_configured(),
        "active_sessions": len(session_store),
        "timestamp": datetime.now().isoformat(),
    }


@app.post("/api/proxy")
async def proxy_text(body: Dict[str, Any], handler: ProxyHandler = Depends(get_text_handler)):
    """Proxy de geração de texto"""
    result = await handler.forward(body)
    return JSONResponse(status_code=result.status_code, content=result.body)


@app.post("/api/proxy-image")
async def proxy_image(body: Dict[str, Any], handler: ProxyHandler = Depends(get_image_handler)):
    """Proxy de geração de imagem"""
    result = await handler.forward(body)
    return JSONResponse(status_code=result.status_code, content=result.body)


@app.get("/")
async def story_page(
    request: Request,
    background_tasks: BackgroundTasks,
    store: SessionStore = Depends(get_session_store),
    service: StoryService = Depends(get_story_service),
):
    """Página da história; sessão nova já começa a carregar a abertura"""
    session = _current_session(request, store)
    is_new = session is None

    if is_new:
        session = store.create(service)
        session.reset()
        background_tasks.add_task(session.open_story)

    response = templates.TemplateResponse(
        request,
        "story.html",
        {"snapshot": session.snapshot()},
    )
    if is_new:
        response.set_cookie(SESSION_COOKIE, session.session_id, httponly=True, samesite="lax")
    return response


@app.post("/choose")
async def choose(
    request: Request,
    background_tasks: BackgroundTasks,
    index: int = Form(...),
    store: SessionStore = Depends(get_session_store),
):
    session = _current_session(request, store)
    if session is not None:
        choices = session.choices
        if 0 <= index < len(choices):
            try:
                history = session.select_choice(choices[index])
                background_tasks.add_task(session.advance, history)
            except InvalidTransitionError as e:
                logger.info(f"choose ignorado: {e}")
        else:
            logger.info(f"choose ignorado: índice {index} fora de {len(choices)} escolha(s)")

    return RedirectResponse("/", status_code=303)


@app.post("/restart")
async def restart(
    request: Request,
    background_tasks: BackgroundTasks,
    store: SessionStore = Depends(get_session_store),
):
    session = _current_session(request, store)
    if session is not None:
        session.reset()
        background_tasks.add_task(session.open_story)

    return RedirectResponse("/", status_code=303)


@app.get("/api/story")
async def story_state(request: Request, store: SessionStore = Depends(get_session_store)):
    """Estado da sessão atual em JSON"""
    session = _current_session(request, store)
    if session is None:
        raise HTTPException(status_code=404, detail="Sessão não encontrada")
    return session.snapshot()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
