
# farmguide/llm.py

import time
import logging

from groq import Groq

from farmguide.config import (
    GROQ_API_KEY,
    GROQ_MODEL,
    LLM_TEMPERATURE,
    LLM_MAX_TOKENS,
    LLM_TOP_P,
)

logger = logging.getLogger("llm")

_client = Groq(api_key=GROQ_API_KEY) if GROQ_API_KEY else None

SYSTEM_PROMPTS = {
    "diagnosis": """
You are FarmGuide, an expert agricultural AI assistant helping Indian farmers diagnose crop problems.

Your role:
- Understand farmers speaking in Hindi or English about crop issues
- Identify diseases, pests, nutrient deficiencies, or environmental problems
- Provide practical, actionable solutions suitable for Indian farming
- Recommend organic solutions first, then chemical if needed
- Suggest preventive measures

Response format:
- Start with likely problem diagnosis
- List confirming symptoms
- Provide 2-3 treatment options (prioritize organic/affordable)
- Include preventive tips
- If farmer speaks Hindi, respond in Hindi. If English, respond in English.

Keep responses concise (under 250 words) and farmer-friendly.
""",
    "inventory": """
You are FarmGuide Inventory Manager. Parse voice commands to manage farm inventory.

Your role:
- Understand Hindi/English voice commands about inventory changes
- Extract: action (add/remove/update/use), category (fertilizer/seed/crop/pesticide/equipment), item name, quantity, unit
- Create structured data for system processing
- Respond with confirmation in farmer's language

Example: "मैंने 50 किलो यूरिया खरीदा" -> {"action":"add", "category":"fertilizer", "item":"Urea", "quantity":50, "unit":"kg"}

Respond with:
1. Confirmation message in farmer's language
2. JSON structure: {"action":"...", "category":"...", "item":"...", "quantity":..., "unit":"..."}

Be accurate and confirm clearly.
""",
    "general": """
You are FarmGuide, a friendly AI farming assistant for Indian farmers.

Help with:
- Crop selection and planning
- Seasonal advice for Indian agriculture
- Government schemes (PM-KISAN, Kisan Credit Card, etc.)
- Best farming practices for Indian conditions
- Market and mandi price guidance
- Weather-related farming advice

Language: Respond in the same language the farmer uses (Hindi/English).
Keep responses practical, specific to India, and under 200 words.

Be supportive and empathetic. Remember, farming is their livelihood.
""",
}


def get_farming_system_prompt(context: str) -> str:
    if context not in SYSTEM_PROMPTS:
        raise ValueError(f"Unknown farming context: {context}")
    return SYSTEM_PROMPTS[context].strip()


def query_farming_llm(user_message: str, context: str = "diagnosis", chat_history=None) -> str:
    """
    Asks the Groq chat model for farming help in the given context.

    Falls back to canned bilingual advice when no API key is configured,
    when the API call fails or when the model returns nothing.
    """
    system_prompt = get_farming_system_prompt(context)

    if _client is None:
        logger.warning("Groq API key not found. Using fallback responses.")
        return get_fallback_farming_response(user_message, context)

    messages = [{"role": "system", "content": system_prompt}]
    if chat_history:
        messages.extend(chat_history)
    messages.append({"role": "user", "content": user_message})

    start = time.perf_counter()
    try:
        response = _client.chat.completions.create(
            model=GROQ_MODEL,
            messages=messages,
            temperature=LLM_TEMPERATURE,
            max_tokens=LLM_MAX_TOKENS,
            top_p=LLM_TOP_P,
        )
        content = response.choices[0].message.content if response.choices else None
    except Exception:
        logger.exception("LLM API error (context=%s)", context)
        return get_fallback_farming_response(user_message, context)
    finally:
        logger.info("[timing] step=groq.chat ms=%.2f", (time.perf_counter() - start) * 1000.0)

    if not content or not content.strip():
        logger.warning("Empty LLM response (context=%s), using fallback", context)
        return get_fallback_farming_response(user_message, context)

    return content.strip()


LEAF_FALLBACK = """**संभावित समस्या: पत्ती पीली होना / Leaf Yellowing**

**लक्षण:**
- पत्तियों का पीला पड़ना
- विकास रुकना
- उपज में कमी

**उपचार:**
1. **जैविक:** गोबर की खाद या कम्पोस्ट डालें (Organic manure)
2. **रासायनिक:** NPK उर्वरक (19:19:19) - 5 किलो प्रति एकड़
3. **तत्काल:** जिंक सल्फेट का छिड़काव (Zinc sulfate spray)

**रोकथाम:** नियमित मिट्टी परीक्षण करें और संतुलित उर्वरक डालें।

*Note: यह सामान्य सलाह है। विस्तृत मदद के लिए Groq API key कॉन्फ़िगर करें।*"""

PEST_FALLBACK = """**संभावित समस्या: कीट प्रकोप / Pest Attack**

**सामान्य उपचार:**
1. **जैविक:** नीम के तेल का छिड़काव (Neem oil spray)
2. **प्राकृतिक:** लहसुन-मिर्च का घोल
3. **रासायनिक:** Imidacloprid या Chlorpyrifos (अंतिम विकल्प)

**रोकथाम:**
- फसल चक्र अपनाएं
- साफ-सफाई रखें
- नियमित निगरानी करें

*API key कॉन्फ़िगर करने पर विस्तृत निदान मिलेगा। (Configure the Groq API key for a detailed diagnosis.)*"""

DIAGNOSIS_FALLBACK = """मुझे आपकी फसल की समस्या को बेहतर समझने में मदद चाहिए। कृपया बताएं:
- कौनसी फसल है?
- क्या लक्षण दिख रहे हैं?
- समस्या कब शुरू हुई?

Please share: Which crop? What symptoms? When did it start?

*Groq API key कॉन्फ़िगर करने पर मैं बेहतर मदद कर सकता हूं।*"""

INVENTORY_FALLBACK = """कृपया अपने इन्वेंटरी परिवर्तन के बारे में बताएं। उदाहरण:
- "मैंने 50 किलो यूरिया खरीदा"
- "10 किलो गेहूं के बीज इस्तेमाल किए"

Please share inventory changes like:
- "Added 50 kg urea"
- "Used 10 kg wheat seeds"

*For automatic inventory updates, configure Groq API key.*"""

GENERAL_FALLBACK = """नमस्ते! मैं FarmGuide हूं। मैं आपकी कैसे मदद कर सकता हूं?

Hello! I'm FarmGuide. How can I help you today?

I can assist with:
- फसल समस्याओं का निदान / Crop diagnosis
- इन्वेंटरी प्रबंधन / Inventory management
- खेती की सलाह / Farming advice

*Configure Groq API key for best experience.*"""


def get_fallback_farming_response(query: str, context: str) -> str:
    lower_query = (query or "").lower()

    if context == "diagnosis":
        if any(word in lower_query for word in ("पत्त", "leaf", "पीला")):
            return LEAF_FALLBACK
        if any(word in lower_query for word in ("कीट", "pest", "insect")):
            return PEST_FALLBACK
        return DIAGNOSIS_FALLBACK

    if context == "inventory":
        return INVENTORY_FALLBACK

    return GENERAL_FALLBACK
