# farmguide/app.py

import os
import logging
from functools import partial
from contextlib import asynccontextmanager

import anyio
from fastapi import FastAPI, Request, UploadFile, File, HTTPException
from fastapi.responses import HTMLResponse, JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from farmguide.config import (
    STATIC_DIR,
    TEMPLATES_DIR,
    UPLOAD_DIR,
    INVENTORY_PATH,
    CHAT_HISTORY_LIMIT,
    LOG_LEVEL,
    check_env_variables,
)
from farmguide.inventory import process_voice_command, InventoryCommandError
from farmguide.llm import query_farming_llm
from farmguide.store import AppStore, CATEGORY_LABELS, INVENTORY_CATEGORIES
from farmguide.stt import speech_to_text, speech_locale, SpeechToTextError
from farmguide.tts import clean_text_for_speech, synthesize_speech, SpeechSynthesisError
from farmguide.utils import is_image_upload, render_markdown, save_uploaded_bytes
from farmguide.vision import analyze_crop_image

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("app")

STORE = AppStore(persist_path=INVENTORY_PATH)

ERROR_REPLY = {
    "hi": "क्षमा करें, कोई त्रुटि हुई। कृपया पुनः प्रयास करें।",
    "en": "I apologize, but I encountered an error. Please try again.",
}
NOT_IMAGE = {
    "hi": "कृपया इमेज फाइल चुनें",
    "en": "Please select an image file",
}
COMMAND_HINT = {
    "hi": "कमांड समझ नहीं आई। उदाहरण: “10 किलो यूरिया खाद जोड़ें”",
    "en": "Could not understand the command. Example: “Add 10 kg urea fertiliser”",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting FarmGuide...")
    check_env_variables()
    yield


app = FastAPI(title="FarmGuide", lifespan=lifespan)

os.makedirs(UPLOAD_DIR, exist_ok=True)

app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")
app.mount("/uploads", StaticFiles(directory=UPLOAD_DIR), name="uploads")

templates = Jinja2Templates(directory=TEMPLATES_DIR)
templates.env.filters["markdown"] = render_markdown
templates.env.filters["speech"] = clean_text_for_speech


def _render(request: Request, name: str, page: str, **context):
    lang = STORE.selected_language
    return templates.TemplateResponse(
        request,
        name,
        {
            "lang": lang,
            "page": page,
            "speech_locale": speech_locale(lang),
            "farming_context": STORE.farming_context,
            **context,
        },
    )


# ---------- PAGES ----------

@app.get("/", response_class=HTMLResponse)
def home(request: Request):
    return _render(request, "index.html", "home")


@app.get("/chat", response_class=HTMLResponse)
def chat_page(request: Request):
    STORE.set_farming_context("general")
    return _render(request, "chat.html", "chat", messages=STORE.messages)


@app.get("/diagnose", response_class=HTMLResponse)
def diagnose_page(request: Request):
    STORE.set_farming_context("diagnosis")
    return _render(request, "chat.html", "diagnose", messages=STORE.messages)


@app.get("/analyze", response_class=HTMLResponse)
def analyze_page(request: Request):
    STORE.set_farming_context("diagnosis")
    return _render(request, "analyze.html", "analyze")


@app.get("/inventory", response_class=HTMLResponse)
def inventory_page(request: Request):
    STORE.set_farming_context("inventory")
    return _render(
        request,
        "inventory.html",
        "inventory",
        grouped=STORE.grouped_inventory(),
        labels=CATEGORY_LABELS,
    )


@app.get("/about", response_class=HTMLResponse)
def about(request: Request):
    return _render(request, "about.html", "about")


@app.get("/health")
def health():
    return {"status": "ok"}


# ---------- CHAT ----------

@app.post("/api/chat")
def chat(payload: dict):
    message = str(payload.get("message") or "").strip()
    if not message:
        raise HTTPException(status_code=400, detail="Message is required")

    context = payload.get("context")
    if context:
        try:
            STORE.set_farming_context(context)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
    context = STORE.farming_context

    history = STORE.recent_history(CHAT_HISTORY_LIMIT) if context != "inventory" else None
    STORE.add_message("user", message)
    STORE.set_loading(True)
    try:
        reply = query_farming_llm(message, context, chat_history=history)
    except Exception:
        logger.exception("Error getting response")
        reply = ERROR_REPLY[STORE.selected_language]
    finally:
        STORE.set_loading(False)

    STORE.add_message("assistant", reply)
    return {
        "reply": reply,
        "html": render_markdown(reply),
        "speech_text": clean_text_for_speech(reply),
        "context": context,
    }


@app.get("/api/messages")
def list_messages():
    return {
        "messages": [m.to_dict() for m in STORE.messages],
        "is_loading": STORE.is_loading,
    }


@app.delete("/api/messages")
def clear_messages():
    STORE.clear_messages()
    return {"messages": []}


@app.post("/api/language")
def set_language(payload: dict):
    try:
        STORE.set_language(payload.get("language"))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return {"language": STORE.selected_language, "speech_locale": speech_locale(STORE.selected_language)}


@app.post("/api/context")
def set_context(payload: dict):
    try:
        STORE.set_farming_context(payload.get("context"))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return {"context": STORE.farming_context}


# ---------- IMAGE ANALYSIS ----------

@app.post("/api/analyze")
async def analyze_image(image: UploadFile = File(...)):
    if not is_image_upload(image):
        raise HTTPException(status_code=400, detail=NOT_IMAGE[STORE.selected_language])

    data = await image.read()
    if not data:
        raise HTTPException(status_code=400, detail=NOT_IMAGE[STORE.selected_language])

    filename = save_uploaded_bytes(data, image.content_type)
    analysis = await anyio.to_thread.run_sync(partial(analyze_crop_image, data))

    return {
        "analysis": analysis,
        "analysis_html": render_markdown(analysis),
        "image_url": f"/uploads/{filename}",
    }


# ---------- INVENTORY ----------

def _inventory_payload():
    grouped = STORE.grouped_inventory()
    return {
        "items": [item.to_dict() for item in STORE.inventory],
        "grouped": {
            category: [item.to_dict() for item in grouped[category]]
            for category in INVENTORY_CATEGORIES
        },
    }


@app.get("/api/inventory")
def list_inventory():
    return _inventory_payload()


@app.post("/api/inventory", status_code=201)
def add_inventory_item(payload: dict):
    try:
        item = STORE.add_inventory_item(
            category=payload.get("category"),
            name=payload.get("name"),
            quantity=payload.get("quantity"),
            unit=payload.get("unit"),
            notes=payload.get("notes"),
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return item.to_dict()


@app.patch("/api/inventory/{item_id}")
def update_inventory_item(item_id: str, payload: dict):
    try:
        item = STORE.update_inventory_item(item_id, **payload)
    except KeyError:
        raise HTTPException(status_code=404, detail="Inventory item not found")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return item.to_dict()


@app.delete("/api/inventory/{item_id}")
def remove_inventory_item(item_id: str):
    try:
        item = STORE.remove_inventory_item(item_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Inventory item not found")
    return item.to_dict()


@app.post("/api/inventory/command")
def inventory_command(payload: dict):
    command = str(payload.get("command") or "").strip()
    if not command:
        raise HTTPException(status_code=400, detail="Command is required")

    try:
        result = process_voice_command(STORE, command)
    except (InventoryCommandError, ValueError) as exc:
        logger.warning("Error processing voice command %r: %s", command, exc)
        return JSONResponse({
            "applied": False,
            "action": None,
            "item": None,
            "command": command,
            "reply": COMMAND_HINT[STORE.selected_language],
        })

    return result


# ---------- SPEECH ----------

@app.post("/api/stt")
async def speech_input(audio: UploadFile = File(...)):
    audio_bytes = await audio.read()
    if not audio_bytes:
        raise HTTPException(status_code=400, detail="Audio is required")

    try:
        return await anyio.to_thread.run_sync(
            partial(speech_to_text, audio_bytes, audio.filename or "speech.wav")
        )
    except SpeechToTextError as exc:
        raise HTTPException(status_code=502, detail=str(exc))


@app.post("/api/tts")
def text_to_speech(payload: dict):
    language = payload.get("language") or STORE.selected_language
    try:
        audio = synthesize_speech(str(payload.get("text") or ""), language)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except SpeechSynthesisError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    return Response(content=audio, media_type="audio/mpeg")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("farmguide.app:app", host="0.0.0.0", port=8000, reload=False)
