"""
Client for the external multimodal model (Gemini ``generateContent`` REST API).

``analyze`` never fails on a badly shaped model answer: the text is parsed
leniently and anything missing is filled from :data:`FALLBACK_RESULT`. It does
raise :class:`GatewayError` when the model cannot be reached at all, so the
caller can leave the record without AI fields.
"""

import base64
import json
import logging
import re

import requests

from skinportal.errors import GatewayError
from skinportal.models.diagnosis import RiskLevel

logger = logging.getLogger(__name__)

LESION_CATEGORIES = [
    "benign melanocytic nevus",
    "suspected melanoma",
    "seborrheic keratosis",
    "basal cell carcinoma",
    "actinic keratosis",
    "dermatofibroma",
    "vascular lesion",
    "eczema / dermatitis",
    "psoriasis",
    "acne",
    "fungal infection",
]

ANALYSIS_PROMPT = """You are a dermatology assistant providing a preliminary assessment of a skin photo.
Recognised categories: {categories}.

Reply with JSON only, in exactly this shape:
{{
  "diagnosis": "category name",
  "confidence": number between 0 and 100,
  "riskLevel": "low" | "medium" | "high",
  "details": ["finding 1", "finding 2", "finding 3"],
  "recommendations": ["advice 1", "advice 2", "advice 3"]
}}

Consider shape, border, colour distribution, asymmetry, size, surface features,
the symptoms reported by the patient and other risk factors.
This is an aid only; a doctor confirms the final diagnosis."""

FALLBACK_RESULT = {
    "diagnosis": "Requires doctor evaluation",
    "confidence": 70,
    "riskLevel": RiskLevel.MEDIUM.value,
    "details": ["Automatic analysis finished but the result needs a doctor's confirmation"],
    "recommendations": [
        "See a dermatologist as soon as possible",
        "Keep the affected area clean",
        "Avoid scratching or irritating the lesion",
    ],
}

_FENCE_RE = re.compile(r"```json\s*([\s\S]*?)\s*```")
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")
_DATA_URL_RE = re.compile(r"^data:image/[\w.+-]+;base64,")

_RISK_ALIASES = {
    "low": RiskLevel.LOW, "low risk": RiskLevel.LOW, "低风险": RiskLevel.LOW,
    "medium": RiskLevel.MEDIUM, "moderate": RiskLevel.MEDIUM, "medium risk": RiskLevel.MEDIUM,
    "中风险": RiskLevel.MEDIUM,
    "high": RiskLevel.HIGH, "high risk": RiskLevel.HIGH, "高风险": RiskLevel.HIGH,
}


# =========================
# PARSING
# =========================
def normalize_risk(value) -> RiskLevel | None:
    if isinstance(value, RiskLevel):
        return value
    if not isinstance(value, str):
        return None
    return _RISK_ALIASES.get(value.strip().lower())


def _extract_json(text: str) -> str:
    fenced = _FENCE_RE.search(text)
    if fenced:
        return fenced.group(1)
    obj = _OBJECT_RE.search(text)
    if obj:
        return obj.group(0)
    return text


def _string_list(value):
    if isinstance(value, list):
        items = [str(v).strip() for v in value if str(v).strip()]
        return items or None
    if isinstance(value, str) and value.strip():
        return [value.strip()]
    return None


def _confidence(value):
    if isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip().rstrip("%"))
    except (TypeError, ValueError):
        return None
    if number != number:  # NaN
        return None
    return max(0.0, min(100.0, number))


def parse_analysis(text: str) -> dict:
    """Turn raw model text into the analysis shape, filling gaps from the fallback."""
    try:
        payload = json.loads(_extract_json(text or ""))
    except ValueError:
        logger.warning("Model answer is not JSON, using fallback: %.200s", text)
        result = dict(FALLBACK_RESULT)
        result["details"] = FALLBACK_RESULT["details"] + ([text[:200]] if text else [])
        return result

    if not isinstance(payload, dict):
        logger.warning("Model answer is not a JSON object, using fallback")
        return dict(FALLBACK_RESULT)

    diagnosis = payload.get("diagnosis")
    diagnosis = diagnosis.strip() if isinstance(diagnosis, str) else ""
    risk = normalize_risk(payload.get("riskLevel"))
    confidence = _confidence(payload.get("confidence"))

    return {
        "diagnosis": diagnosis or FALLBACK_RESULT["diagnosis"],
        "confidence": confidence if confidence is not None else FALLBACK_RESULT["confidence"],
        "riskLevel": risk.value if risk else FALLBACK_RESULT["riskLevel"],
        "details": _string_list(payload.get("details")) or list(FALLBACK_RESULT["details"]),
        "recommendations": _string_list(payload.get("recommendations")) or list(FALLBACK_RESULT["recommendations"]),
    }


def strip_data_url(image_base64: str) -> str:
    return _DATA_URL_RE.sub("", image_base64.strip())


# =========================
# CLIENT
# =========================
class AnalysisGateway:
    def __init__(self, api_key, base_url, model, timeout=30.0, temperature=0.3, max_output_tokens=1024):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens

    @classmethod
    def from_config(cls, config):
        return cls(
            api_key=config.get("GEMINI_API_KEY"),
            base_url=config["GEMINI_API_BASE"],
            model=config["GEMINI_MODEL"],
            timeout=config.get("ANALYSIS_TIMEOUT", 30.0),
            temperature=config.get("TEMPERATURE", 0.3),
            max_output_tokens=config.get("MAX_OUTPUT_TOKENS", 1024),
        )

    def _generate(self, parts) -> str:
        if not self.api_key:
            raise GatewayError("Analysis service is not configured")

        url = f"{self.base_url}/models/{self.model}:generateContent"
        body = {
            "contents": [{"parts": parts}],
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_output_tokens,
            },
        }

        try:
            resp = requests.post(url, params={"key": self.api_key}, json=body, timeout=self.timeout)
        except requests.Timeout as e:
            logger.warning("Model call timed out after %ss", self.timeout)
            raise GatewayError("Analysis service timed out") from e
        except requests.RequestException as e:
            logger.warning("Model call failed: %s", e)
            raise GatewayError("Analysis service is unavailable, please try again later") from e

        if not resp.ok:
            logger.error("Model API error %s: %.500s", resp.status_code, resp.text)
            raise GatewayError("Analysis service is unavailable, please try again later",
                               {"upstream_status": resp.status_code})

        try:
            data = resp.json()
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.error("Model returned no candidate text")
            raise GatewayError("No analysis result was returned") from e

        if not text:
            raise GatewayError("No analysis result was returned")
        return text

    def analyze(self, image_bytes: bytes, symptoms: str | None = None, mime_type: str = "image/jpeg") -> dict:
        prompt = ANALYSIS_PROMPT.format(categories=", ".join(LESION_CATEGORIES))
        if symptoms:
            user_message = f"Please analyse this skin photo. Symptoms reported by the patient: {symptoms}"
        else:
            user_message = "Please analyse this skin photo and give a preliminary assessment."

        text = self._generate([
            {"text": prompt},
            {"text": user_message},
            {"inline_data": {"mime_type": mime_type, "data": base64.b64encode(image_bytes).decode("ascii")}},
        ])
        return parse_analysis(text)

    def generate_text(self, prompt: str) -> str:
        return self._generate([{"text": prompt}]).strip()
