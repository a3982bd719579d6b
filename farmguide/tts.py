# ========================= farmguide/tts.py =========================

import io
import re
import logging

from gtts import gTTS, gTTSError

logger = logging.getLogger("tts")


class SpeechSynthesisError(RuntimeError):
    pass


TTS_LANGUAGES = {"hi": "hi", "en": "en"}

_BOLD_RE = re.compile(r"\*\*")
_ITALIC_RE = re.compile(r"\*")
_LINK_RE = re.compile(r"\[([^\]]+)\]\([^)]+\)")
_HEADER_RE = re.compile(r"#{1,6}\s")
_CODE_RE = re.compile(r"`([^`]+)`")


def clean_text_for_speech(text: str) -> str:
    """Strips markdown so the speech engine does not read symbols aloud."""
    text = _BOLD_RE.sub("", text or "")
    text = _ITALIC_RE.sub("", text)
    text = _LINK_RE.sub(r"\1", text)
    text = _HEADER_RE.sub("", text)
    text = _CODE_RE.sub(r"\1", text)
    return text


def synthesize_speech(text: str, language: str = "en") -> bytes:
    clean = clean_text_for_speech(text).strip()
    if not clean:
        raise ValueError("Nothing to speak")

    lang_code = TTS_LANGUAGES.get(language, "en")
    audio_fp = io.BytesIO()
    try:
        tts = gTTS(text=clean, lang=lang_code, slow=False)
        tts.write_to_fp(audio_fp)
    except gTTSError as exc:
        logger.error("Error generating TTS audio (%s): %s", lang_code, exc, exc_info=True)
        raise SpeechSynthesisError(str(exc)) from exc
    logger.info("Generated %d bytes of speech audio in '%s'", audio_fp.tell(), lang_code)
    return audio_fp.getvalue()
