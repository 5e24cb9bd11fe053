"""
Proxies de texto e imagem
"""
import asyncio
import json

import aiohttp
from aiohttp import web
from aiohttp.test_utils import TestServer
import pytest
from unittest.mock import AsyncMock

from config.settings import Settings
from providers.gemini_proxy import (
    MISSING_KEY_ERROR,
    ImageProxyHandler,
    TextProxyHandler,
    create_proxy_handlers,
)

TEXT_URL = "https://upstream.test/models/{model}:generateContent"
IMAGE_URL = "https://upstream.test/models/{model}:predict"


def text_handler(api_key="segredo"):
    return TextProxyHandler(api_key=api_key, url_template=TEXT_URL, default_model="gemini-2.5-flash")


def image_handler(api_key="segredo"):
    return ImageProxyHandler(api_key=api_key, url_template=IMAGE_URL, default_model="imagen-4.0-generate-001")


@pytest.mark.unit
class TestMissingCredential:

    def test_text_without_key_returns_500(self):
        handler = text_handler(api_key="")
        handler._post = AsyncMock()

        result = asyncio.run(handler.forward({"model": "gemini-2.5-flash"}))

        assert result.status_code == 500
        assert result.body == {"error": MISSING_KEY_ERROR}
        handler._post.assert_not_called()

    def test_image_without_key_returns_500(self):
        result = asyncio.run(image_handler(api_key=None).forward({}))
        assert result.status_code == 500
        assert not result.ok


@pytest.mark.unit
class TestForwarding:

    def test_body_forwarded_unmodified(self):
        handler = text_handler()
        handler._post = AsyncMock(return_value=(200, {"story": "a", "choices": ["b"]}))
        body = {"model": "gemini-2.5-flash", "contents": "prompt", "config": {"temperature": 0.8}}

        result = asyncio.run(handler.forward(body))

        handler._post.assert_awaited_once_with(
            "https://upstream.test/models/gemini-2.5-flash:generateContent", "segredo", body
        )
        assert result.status_code == 200
        assert result.body == {"story": "a", "choices": ["b"]}

    def test_default_model_when_body_has_none(self):
        assert text_handler().build_url({}) == "https://upstream.test/models/gemini-2.5-flash:generateContent"

    def test_upstream_error_status_passed_through(self):
        handler = text_handler()
        error_body = {"error": {"code": 403, "message": "API key not valid"}}
        handler._post = AsyncMock(return_value=(403, error_body))

        result = asyncio.run(handler.forward({}))

        assert result.status_code == 403
        assert result.body == error_body

    def test_transport_failure_returns_500(self):
        handler = text_handler()
        handler._post = AsyncMock(side_effect=aiohttp.ClientConnectionError("conexão recusada"))

        result = asyncio.run(handler.forward({}))

        assert result.status_code == 500
        assert result.body == {"error": "conexão recusada"}

    def test_timeout_returns_500(self):
        handler = text_handler()
        handler._post = AsyncMock(side_effect=asyncio.TimeoutError())

        result = asyncio.run(handler.forward({}))

        assert result.status_code == 500
        assert "error" in result.body

    def test_non_json_body_returns_500(self):
        handler = text_handler()
        handler._post = AsyncMock(side_effect=json.JSONDecodeError("Expecting value", "<html>", 0))

        result = asyncio.run(handler.forward({}))

        assert result.status_code == 500
        assert "Expecting value" in result.body["error"]


@pytest.mark.unit
class TestImageNormalization:

    def test_predictions_become_flat_base64(self):
        handler = image_handler()
        handler._post = AsyncMock(return_value=(200, {"predictions": [{"bytesBase64Encoded": "QQ==", "mimeType": "image/jpeg"}]}))

        result = asyncio.run(handler.forward({"model": "imagen-4.0-generate-001"}))

        assert result.body == {"imageBase64": "QQ=="}

    def test_known_shapes_pass_through(self):
        body = {"dataUrl": "data:image/png;base64,Zm9v"}
        assert image_handler().normalize(body) == body

    def test_text_handler_does_not_normalize(self):
        body = {"predictions": [{"bytesBase64Encoded": "QQ=="}]}
        assert text_handler().normalize(body) == body


@pytest.mark.unit
class TestHandlerFactory:

    def test_credential_injected_from_settings(self):
        settings = Settings(GEMINI_API_KEY="injetada", GEMINI_TEXT_MODEL="modelo-texto")
        handlers = create_proxy_handlers(settings)

        assert handlers["text"].api_key == "injetada"
        assert handlers["image"].api_key == "injetada"
        assert handlers["text"].default_model == "modelo-texto"
        assert handlers["text"].is_available()


def forward_to_local_upstream(upstream, body, handler_cls=TextProxyHandler, timeout=5.0):
    """Sobe um servidor aiohttp local e encaminha o corpo pelo proxy real"""
    captured = {}

    async def endpoint(request):
        captured["name"] = request.match_info["name"]
        captured["query"] = dict(request.query)
        captured["content_type"] = request.headers.get("Content-Type", "")
        captured["body"] = await request.json()
        return await upstream(request)

    async def run():
        app = web.Application()
        app.router.add_post("/models/{name}", endpoint)
        async with TestServer(app) as server:
            url_template = f"http://{server.host}:{server.port}/models/{{model}}:generateContent"
            handler = handler_cls(api_key="segredo", url_template=url_template, default_model="padrao", timeout=timeout)
            return await handler.forward(body)

    return asyncio.run(run()), captured


@pytest.mark.unit
class TestLocalUpstream:
    """Proxy real contra um upstream aiohttp local"""

    def test_body_key_and_header_reach_upstream(self):
        body = {"model": "gemini-2.5-flash", "contents": "Olá", "config": {"temperature": 0.8}}

        async def upstream(request):
            return web.json_response({"story": "a", "choices": ["b"]})

        result, captured = forward_to_local_upstream(upstream, body)

        assert result.status_code == 200
        assert result.body == {"story": "a", "choices": ["b"]}
        assert captured["name"] == "gemini-2.5-flash:generateContent"
        assert captured["query"] == {"key": "segredo"}
        assert captured["content_type"].startswith("application/json")
        assert captured["body"] == body

    def test_upstream_status_passed_through(self):
        async def upstream(request):
            return web.json_response({"error": {"code": 403, "message": "API key not valid"}}, status=403)

        result, _ = forward_to_local_upstream(upstream, {"model": "x"})

        assert result.status_code == 403
        assert result.body["error"]["message"] == "API key not valid"

    def test_html_error_page_becomes_500(self):
        async def upstream(request):
            return web.Response(status=502, text="<html>Bad Gateway</html>", content_type="text/html")

        result, _ = forward_to_local_upstream(upstream, {"model": "x"})

        assert result.status_code == 500
        assert "error" in result.body

    def test_slow_upstream_times_out(self):
        async def upstream(request):
            await asyncio.sleep(1)
            return web.json_response({})

        result, _ = forward_to_local_upstream(upstream, {"model": "x"}, timeout=0.2)

        assert result.status_code == 500
        assert "error" in result.body

    def test_image_predictions_normalized_end_to_end(self):
        async def upstream(request):
            return web.json_response({"predictions": [{"bytesBase64Encoded": "QQ==", "mimeType": "image/jpeg"}]})

        result, _ = forward_to_local_upstream(upstream, {"model": "imagen"}, handler_cls=ImageProxyHandler)

        assert result.body == {"imageBase64": "QQ=="}
