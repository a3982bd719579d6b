# farmguide/vision.py

import io
import time
import base64
import binascii
import logging

import numpy as np
from PIL import Image, UnidentifiedImageError
from google import genai
from google.genai import types

from farmguide.config import (
    GEMINI_API_KEY,
    GEMINI_MODEL,
    VISION_TEMPERATURE,
    VISION_MAX_OUTPUT_TOKENS,
    HEURISTIC_WIDTH,
)

logger = logging.getLogger("vision")

_client = genai.Client(api_key=GEMINI_API_KEY) if GEMINI_API_KEY else None

PATHOLOGIST_PROMPT = (
    "You are an agricultural pathologist for Indian farmers. Analyze this crop/soil image. "
    "Identify any diseases, pests, or nutrient deficiencies. Give practical treatments (prefer organic), "
    "preventive tips, and risk level. Respond in both Hindi and English in 8-12 bullet lines total."
)


def strip_data_url(image: str) -> str:
    if image.startswith("data:") and "," in image:
        return image.split(",", 1)[1]
    return image


def _to_bytes(image) -> bytes:
    if isinstance(image, (bytes, bytearray)):
        return bytes(image)
    return base64.b64decode(strip_data_url(image.strip()))


def analyze_crop_image(image) -> str:
    """
    Diagnoses a crop or soil photo.

    `image` is raw bytes or a base64 string, with or without a data URL
    prefix. Gemini is used when a key is configured; otherwise, or when
    Gemini fails, a local colour heuristic answers instead.
    """
    try:
        image_bytes = _to_bytes(image)
    except (binascii.Error, ValueError):
        logger.error("Image payload is not valid base64")
        return local_heuristic_message()

    if _client is not None:
        try:
            return _analyze_with_gemini(image_bytes)
        except Exception:
            logger.exception("Gemini Vision analysis failed, falling back locally")

    try:
        scores = heuristic_scores(image_bytes)
    except (UnidentifiedImageError, OSError, ValueError):
        logger.exception("Local analysis failed")
        return local_heuristic_message()

    return local_heuristic_message(scores["green"], scores["yellow"], scores["brown"])


def _analyze_with_gemini(image_bytes: bytes) -> str:
    start = time.perf_counter()
    try:
        response = _client.models.generate_content(
            model=GEMINI_MODEL,
            contents=[
                PATHOLOGIST_PROMPT,
                types.Part.from_bytes(data=image_bytes, mime_type="image/jpeg"),
            ],
            config={
                "temperature": VISION_TEMPERATURE,
                "max_output_tokens": VISION_MAX_OUTPUT_TOKENS,
            },
        )
    finally:
        logger.info("[timing] step=gemini.vision ms=%.2f", (time.perf_counter() - start) * 1000.0)

    text = (response.text or "").strip()
    if not text:
        raise ValueError("Empty Gemini response")
    return text


def heuristic_scores(image_bytes: bytes) -> dict:
    with Image.open(io.BytesIO(image_bytes)) as source:
        image = source.convert("RGB")

    width, height = image.size
    thumb_height = round((height / width) * HEURISTIC_WIDTH) or HEURISTIC_WIDTH
    image = image.resize((HEURISTIC_WIDTH, thumb_height))

    pixels = np.asarray(image, dtype=np.int16)
    r, g, b = pixels[..., 0], pixels[..., 1], pixels[..., 2]
    total = r.size

    greenish = np.count_nonzero((g > r + 15) & (g > b + 10))
    yellowish = np.count_nonzero((r > 140) & (g > 140) & (b < 100))
    brownish = np.count_nonzero((r > 80) & (g < 60) & (b < 60))

    return {
        "green": greenish / total * 100,
        "yellow": yellowish / total * 100,
        "brown": brownish / total * 100,
    }


def local_heuristic_message(green=0, yellow=0, brown=0) -> str:
    if green > 60:
        overall = "Low"
    elif green > 40:
        overall = "Medium"
    else:
        overall = "High"

    hints = []
    if yellow > 8:
        hints.append("Yellowing may indicate nitrogen deficiency or water stress.")
    if brown > 4:
        hints.append("Brown/necrotic spots may indicate fungal/bacterial disease or pest damage.")
    if not hints:
        hints.append("No obvious severe issues detected visually. Monitor regularly.")
    hint_text = " ".join(hints)

    return (
        "Hindi:\n"
        f"• समग्र जोखिम: {overall}\n"
        f"• संकेत: {hint_text}\n"
        "• सुझाव: सिंचाई/उर्वरक संतुलित रखें, प्रभावित पत्तियों का निरीक्षण करें, "
        "ज़रूरत पर नीम तेल छिड़काव करें।\n"
        "\n"
        "English:\n"
        f"• Overall risk: {overall}\n"
        f"• Hints: {hint_text}\n"
        "• Tips: Balance irrigation/fertilizer, inspect affected leaves, "
        "consider neem oil spray if pests suspected."
    )
