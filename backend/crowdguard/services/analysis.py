# backend/crowdguard/services/analysis.py
from __future__ import annotations

import logging
import os

import google.generativeai as genai

log = logging.getLogger(__name__)

GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")

MISSING_KEY_MESSAGE = (
    "Analysis unavailable (Missing API Key). Please add GEMINI_API_KEY to .env "
    "for real image analysis."
)
FAILED_MESSAGE = "Verification unavailable"

PROMPT = (
    "Analyze this image. If it depicts a safety incident (theft, accident, fire, "
    "assault, suspicious activity, etc.), provide a short, factual description "
    "(max 2 sentences). If it does not appear to be a safety incident or is "
    "unclear, return 'Not a safety incident'."
)


def analyze_image(data: bytes, mime_type: str) -> str:
    """
    Ask Gemini whether the photo shows a safety incident.
    Never raises: a missing key or a failed call returns a fixed message.
    """
    api_key = os.getenv("GEMINI_API_KEY")
    if not api_key:
        log.warning("GEMINI_API_KEY is missing. Using mock analysis.")
        return MISSING_KEY_MESSAGE

    try:
        genai.configure(api_key=api_key)
        model = genai.GenerativeModel(GEMINI_MODEL)
        response = model.generate_content([PROMPT, {"mime_type": mime_type, "data": data}])
        return response.text.strip()
    except Exception:
        log.exception("Gemini analysis failed")
        return FAILED_MESSAGE
