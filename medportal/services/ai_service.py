"""OpenAI wrapper.

One attempt per call, no retries: a failure surfaces to the request handler
as AIServiceError and the caller resubmits. Prompt builders live here too so
the requested response formats sit next to the client that sends them.
"""
from __future__ import annotations

import base64
import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from flask import current_app

from medportal.normalizer import DISEASE_ALLOWLIST

try:
    from openai import OpenAI
except Exception:
    OpenAI = None

logger = logging.getLogger(__name__)


class AIServiceError(Exception):
    """Raised when the text-generation API cannot produce a completion."""


def client_ready() -> Tuple[bool, str]:
    if OpenAI is None:
        return False, "OpenAI SDK not installed"
    key = (current_app.config.get("OPENAI_API_KEY") or "").strip()
    if not key:
        return False, "OPENAI_API_KEY is missing"
    return True, ""


def model_name() -> str:
    return (current_app.config.get("OPENAI_MODEL") or "").strip() or "gpt-4o-mini"


def get_client():
    ok, _ = client_ready()
    if not ok:
        return None
    return OpenAI(
        api_key=current_app.config["OPENAI_API_KEY"].strip(),
        timeout=current_app.config.get("OPENAI_TIMEOUT", 60),
        max_retries=0,
    )


def build_user_content(prompt: str, image_bytes: Optional[bytes] = None, mime_type: Optional[str] = None):
    if not image_bytes:
        return prompt
    b64 = base64.b64encode(image_bytes).decode("ascii")
    return [
        {"type": "text", "text": prompt},
        {"type": "image_url", "image_url": {"url": f"data:{mime_type or 'image/png'};base64,{b64}"}},
    ]


def generate_text(prompt: str, image_bytes: Optional[bytes] = None, mime_type: Optional[str] = None,
                  temperature: float = 0.2) -> str:
    """Send prompt (and optional inline image) and return the raw completion text."""
    client = get_client()
    if client is None:
        _, msg = client_ready()
        raise AIServiceError(msg or "Client not available")
    try:
        res = client.chat.completions.create(
            model=model_name(),
            messages=[{"role": "user", "content": build_user_content(prompt, image_bytes, mime_type)}],
            temperature=temperature,
        )
    except Exception as e:
        raise AIServiceError(f"LLM request failed: {type(e).__name__}: {e}") from e

    text = (res.choices[0].message.content or "").strip() if res.choices else ""
    if not text:
        raise AIServiceError("Empty model output")
    logger.debug("Model response (%d chars)", len(text))
    return text


# ============ Prompts ============

def analysis_prompt() -> str:
    diseases = ", ".join(DISEASE_ALLOWLIST)
    return f"""
You are a medical imaging expert analyzing a provided medical image (X-ray, MRI, or CT scan). Your task is to detect and describe any abnormalities strictly related to the following conditions: {diseases}.

**Instructions:**
1. **Diagnosis**: Identify if the image suggests any of the above conditions.
2. **Observations**: List key findings and abnormalities visible in the scan.
3. **Potential Conditions**: Only include conditions from this list: {diseases}.
4. **Areas of Concern**: Highlight specific regions that require further investigation.

**Response Format (JSON)**:
{{
    "diagnosis": "Brief primary diagnosis",
    "observations": ["List of detailed observations"],
    "potential_conditions": ["Only include diseases from the predefined list"],
    "areas_of_concern": ["Specific areas needing attention"]
}}

Only provide responses related to the listed diseases. If no relevant abnormalities are found, return an empty "potential_conditions" array.
""".strip()


def diagnosis_prompt(symptoms: str) -> str:
    return f"""Given the following symptoms: "{symptoms}", generate a detailed diagnosis report with the following structured format:

**Virtual Health Consultant**
**Diagnosis Report**

**Possible Diagnosis:** [Provide diagnosis]
**Potential Disease:** [Provide disease name]

**Symptoms:**
- [List of symptoms]

**Recommended Treatment:**
- [Detailed treatment plan]

**Prevention Tips:**
- [Preventive measures]
"""


def recommendation_prompt(history: List[Dict[str, Any]]) -> str:
    return f"""
You are an experienced doctor. Based on the patient's past medical diagnoses, observations, and potential conditions, provide future health recommendations.
Include possible future health risks, preventive measures, lifestyle changes to reduce risk, and routine checkups or medical tests to consider.

Format the response with two sections:

**Possible Future Conditions**
- one condition per line

**Preventive Measures**
- one measure per line

Past analyses (JSON):
{json.dumps(history, indent=2)}
""".strip()
