# ========================= farmguide/stt.py =========================

import logging

from groq import Groq

from farmguide.config import GROQ_API_KEY, WHISPER_MODEL

logger = logging.getLogger("stt")

client = Groq(api_key=GROQ_API_KEY) if GROQ_API_KEY else None

SPEECH_ERROR_MESSAGES = {
    "no-speech": "No speech detected. Please try again.",
    "audio-capture": "Microphone not available. Please check permissions.",
    "not-allowed": "Microphone permission denied. Please allow access.",
    "network": "Network error. Please check your connection.",
    "aborted": "Speech recognition aborted.",
}

SPEECH_LOCALES = {"hi": "hi-IN", "en": "en-US"}


class SpeechToTextError(RuntimeError):
    pass


def speech_error_message(code: str) -> str:
    return SPEECH_ERROR_MESSAGES.get(code, f"Speech recognition error: {code}")


def speech_locale(language: str) -> str:
    return SPEECH_LOCALES.get(language, "en-US")


def speech_to_text(audio_bytes: bytes, filename: str = "speech.wav"):
    if not audio_bytes:
        raise ValueError("Empty audio payload")
    if client is None:
        raise SpeechToTextError("Groq API key is not configured")

    try:
        response = client.audio.transcriptions.create(
            file=(filename, audio_bytes),
            model=WHISPER_MODEL,
            response_format="verbose_json"
        )
    except Exception as exc:
        logger.exception("Whisper transcription failed")
        raise SpeechToTextError(str(exc)) from exc

    return {
        "text": (response.text or "").strip(),
        "language": getattr(response, "language", None)
    }
