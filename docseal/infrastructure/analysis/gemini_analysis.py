"""
Gemini Analysis Capability: multimodal document inspection.

One prompt per signal family; each call returns the JSON payload the
collector parses. Malformed model output surfaces as ValueError,
transport/upstream problems as TransientExternalError.

Uses the `google-genai` SDK (async client via `client.aio`).
"""

import json
import logging
import time

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from docseal.core.errors import TransientExternalError
from docseal.core.interfaces.analysis_capability import IAnalysisCapability, SignalFamily

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = """You are a forensic document examiner. You inspect an image of an official document ({document_type}).

IMPORTANT: Respond ONLY with a JSON object, no markdown, no backticks, no extra text.
"""

FAMILY_PROMPTS = {
    SignalFamily.TAMPER: """Look for signs of digital or physical tampering: clone stamping, font mismatches,
inconsistent lighting or compression, misaligned text, altered seals or signatures.

Output JSON format:
{
    "tamperIndicators": [
        {
            "type": "CLONE_STAMP" | "FONT_MISMATCH" | "LIGHTING" | "COMPRESSION" | "ALIGNMENT" | "OTHER",
            "severity": "LOW" | "MEDIUM" | "HIGH" | "CRITICAL",
            "confidence": 0.0 to 1.0,
            "description": "what was observed and where",
            "recommendation": "what a reviewer should check"
        }
    ]
}
Return an empty list when nothing suspicious is found.""",

    SignalFamily.OCR: """Extract every readable text zone.

Output JSON format:
{
    "ocrZones": [
        {"text": "...", "confidence": 0.0 to 1.0, "region": "header | body | mrz | footer | ...", "language": "en"}
    ]
}""",

    SignalFamily.METADATA: """Assess the physical and security properties of the document.

Output JSON format:
{
    "metadata": {
        "documentQuality": "POOR" | "FAIR" | "GOOD" | "EXCELLENT",
        "hasSecurityFeatures": true | false,
        "securityFeatures": ["hologram", "watermark", "microprint", ...],
        "expectedDPI": 300,
        "hasMRZ": true | false
    }
}""",

    SignalFamily.BIOMETRIC: """Locate the holder portrait, if any, and describe it.

Output JSON format:
{
    "biometric": {
        "hasFaceImage": true | false,
        "faceConfidence": 0.0 to 1.0,
        "faceQuality": "POOR" | "FAIR" | "GOOD" | "EXCELLENT",
        "facialFeatures": {"faceShape": "...", "eyeDistance": "...", "noseShape": "...", "jawline": "..."}
    }
}""",
}


def detect_mime_type(image_bytes: bytes) -> str:
    if image_bytes.startswith(b"\x89PNG"):
        return "image/png"
    if image_bytes.startswith(b"%PDF"):
        return "application/pdf"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"


def parse_json_payload(raw: str) -> dict:
    """Strip an optional markdown fence and decode. Raises ValueError on garbage."""
    raw = (raw or "").strip()
    if raw.startswith("```"):
        lines = raw.split("\n")
        raw = "\n".join(lines[1:])  # remove first line
        if raw.rstrip().endswith("```"):
            raw = raw.rstrip()[:-3]
        raw = raw.strip()
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return data


class GeminiAnalysisCapability(IAnalysisCapability):
    """Adapter: IAnalysisCapability backed by Gemini."""

    def __init__(self, api_key: str, model_name: str = "gemini-2.0-flash"):
        self.model_name = model_name
        self.client = genai.Client(api_key=api_key)

    async def analyze(self, image_bytes: bytes, document_type: str, family: SignalFamily) -> dict:
        t0 = time.perf_counter()
        prompt = SYSTEM_PROMPT.format(document_type=document_type) + "\n" + FAMILY_PROMPTS[family]

        try:
            response = await self.client.aio.models.generate_content(
                model=self.model_name,
                contents=[
                    types.Part.from_bytes(data=image_bytes, mime_type=detect_mime_type(image_bytes)),
                    prompt,
                ],
                config={
                    "temperature": 0.1,
                    "max_output_tokens": 2048,
                    "response_mime_type": "application/json",
                },
            )
        except genai_errors.ClientError as e:
            # 4xx other than 429 is permanent
            if e.code == 429:
                raise TransientExternalError("gemini", f"Rate limited: {e}", family=family.value) from e
            raise
        except (genai_errors.ServerError, genai_errors.APIError) as e:
            raise TransientExternalError("gemini", f"Upstream error: {e}", family=family.value) from e
        except (OSError, TimeoutError) as e:
            raise TransientExternalError("gemini", f"Transport error: {e}", family=family.value) from e

        data = parse_json_payload(response.text)
        latency = (time.perf_counter() - t0) * 1000
        logger.debug(f"Gemini {family.value} analysis for {document_type} in {latency:.1f}ms")
        return data
