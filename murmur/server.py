"""Local HTTP and websocket API for the settings UI and the overlay."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict
from typing import TYPE_CHECKING, Any

from fastapi import Body, FastAPI, WebSocket
from fastapi.responses import JSONResponse
from pydantic import BaseModel

if TYPE_CHECKING:
    from murmur.app import DictationApp

logger = logging.getLogger(__name__)


class KeyValidationRequest(BaseModel):
    provider: str
    api_key: str = ""


class DictionaryWord(BaseModel):
    word: str


def create_app(dictation: "DictationApp") -> FastAPI:
    app = FastAPI(
        title="Murmur API",
        description="Local control surface for the Murmur dictation app",
        version="1.0.0",
    )

    @app.get("/health")
    async def health_check():
        return JSONResponse({
            "status": "healthy",
            "state": dictation.state.value,
        })

    @app.get("/settings")
    async def get_settings():
        return JSONResponse(dictation.settings.to_dict())

    @app.put("/settings")
    async def put_settings(partial: dict[str, Any] = Body(...)):
        try:
            settings = dictation.update_settings(partial)
        except ValueError as e:
            logger.warning("Rejected settings update: %s", e)
            return JSONResponse({"error": str(e)}, status_code=422)
        return JSONResponse(settings.to_dict())

    @app.post("/settings/reset")
    async def reset_settings():
        return JSONResponse(dictation.reset_settings().to_dict())

    @app.post("/validate-key")
    async def validate_key(request: KeyValidationRequest):
        result = await dictation.validate_api_key(request.provider, request.api_key)
        return JSONResponse(dict(result))

    @app.post("/recording/start")
    async def start_recording():
        return JSONResponse({"started": dictation.start_recording()})

    @app.post("/recording/stop")
    async def stop_recording():
        dictation.stop_recording()
        return JSONResponse({"state": dictation.state.value})

    @app.post("/recording/cancel")
    async def cancel_recording():
        return JSONResponse({"cancelled": dictation.cancel_recording()})

    @app.post("/correction")
    async def correct_selection():
        dictation.correct_selection()
        return JSONResponse({"state": dictation.state.value})

    @app.get("/history")
    async def get_history(limit: int = 100, offset: int = 0):
        items = dictation.store.get_history(limit=limit, offset=offset)
        return JSONResponse([asdict(item) for item in items])

    @app.delete("/history")
    async def clear_history():
        dictation.store.clear_history()
        return JSONResponse({"cleared": True})

    @app.delete("/history/{item_id}")
    async def delete_history_item(item_id: str):
        if not dictation.store.delete_history(item_id):
            return JSONResponse({"error": "Not found"}, status_code=404)
        return JSONResponse({"deleted": item_id})

    @app.get("/dictionary")
    async def get_dictionary():
        return JSONResponse(dictation.store.get_dictionary())

    @app.post("/dictionary")
    async def add_dictionary_word(request: DictionaryWord):
        if not request.word.strip():
            return JSONResponse({"error": "Word must not be empty"}, status_code=400)
        return JSONResponse(dictation.store.add_to_dictionary(request.word))

    @app.delete("/dictionary/{word}")
    async def remove_dictionary_word(word: str):
        if not dictation.store.remove_from_dictionary(word):
            return JSONResponse({"error": "Not found"}, status_code=404)
        return JSONResponse(dictation.store.get_dictionary())

    @app.websocket("/ws/overlay")
    async def overlay_updates(websocket: WebSocket):
        await websocket.accept()
        client_id = id(websocket)
        logger.info("Overlay client %s connected", client_id)
        queue = dictation.overlay.subscribe()

        async def forward_updates():
            while True:
                await websocket.send_json(await queue.get())

        sender = asyncio.create_task(forward_updates())
        try:
            while True:
                try:
                    message = await websocket.receive()
                except RuntimeError:
                    break
                if message.get("type") == "websocket.disconnect":
                    break
        finally:
            sender.cancel()
            dictation.overlay.unsubscribe(queue)
            logger.info("Overlay client %s disconnected", client_id)

    return app
