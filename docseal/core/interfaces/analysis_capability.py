"""
Contract: Analysis Capability

Multimodal engine that inspects a document image and returns raw
signals for one signal family. Any engine (Gemini, a local model,
an external API) must implement this contract.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum


class SignalFamily(str, Enum):
    TAMPER = "TAMPER"
    OCR = "OCR"
    METADATA = "METADATA"
    BIOMETRIC = "BIOMETRIC"


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.LOW: 0, Severity.MEDIUM: 1, Severity.HIGH: 2, Severity.CRITICAL: 3}


@dataclass(frozen=True)
class TamperIndicator:
    """One sign of tampering (clone stamp, font mismatch, ...)."""
    type: str
    severity: Severity
    confidence: float = 0.0
    description: str = ""
    recommendation: str = "Manual review recommended"

    @classmethod
    def from_payload(cls, data: dict) -> "TamperIndicator":
        return cls(
            type=str(data.get("type") or "UNKNOWN"),
            severity=Severity(str(data.get("severity") or "LOW").upper()),
            confidence=float(data.get("confidence") or 0.0),
            description=str(data.get("description") or ""),
            recommendation=str(data.get("recommendation") or "Manual review recommended"),
        )


@dataclass(frozen=True)
class OCRZone:
    """One extracted text block."""
    text: str
    confidence: float             # 0.0 to 1.0
    region: str = "unknown"
    language: str = "en"

    @classmethod
    def from_payload(cls, data: dict) -> "OCRZone":
        confidence = float(data.get("confidence", 0.0))
        if not 0.0 <= confidence <= 1.0:
            raise ValueError(f"OCR confidence out of range: {confidence}")
        return cls(
            text=str(data.get("text") or ""),
            confidence=confidence,
            region=str(data.get("region") or "unknown"),
            language=str(data.get("language") or "en"),
        )


@dataclass(frozen=True)
class MetadataSignal:
    """Physical / security-feature properties of the image."""
    document_quality: str = "FAIR"          # "POOR", "FAIR", "GOOD", "EXCELLENT"
    has_security_features: bool = False
    security_features: tuple[str, ...] = ()
    expected_dpi: int = 300
    has_mrz: bool = False

    @classmethod
    def from_payload(cls, data: dict) -> "MetadataSignal":
        return cls(
            document_quality=str(data.get("documentQuality") or "FAIR").upper(),
            has_security_features=bool(data.get("hasSecurityFeatures", False)),
            security_features=tuple(str(f) for f in data.get("securityFeatures") or ()),
            expected_dpi=int(data.get("expectedDPI") or 300),
            has_mrz=bool(data.get("hasMRZ", False)),
        )


@dataclass(frozen=True)
class BiometricSignal:
    """Portrait / face descriptor."""
    has_face_image: bool = False
    face_confidence: float = 0.0
    face_quality: str = "UNKNOWN"
    facial_features: dict = field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: dict) -> "BiometricSignal":
        confidence = float(data.get("faceConfidence") or 0.0)
        if not 0.0 <= confidence <= 1.0:
            raise ValueError(f"Face confidence out of range: {confidence}")
        return cls(
            has_face_image=bool(data.get("hasFaceImage", False)),
            face_confidence=confidence,
            face_quality=str(data.get("faceQuality") or "UNKNOWN").upper(),
            facial_features=dict(data.get("facialFeatures") or {}),
        )


@dataclass
class RawSignals:
    """
    Output of one collection run. Each family is None when it failed
    or was skipped; the scorer substitutes the neutral value.
    """
    tamper: list[TamperIndicator] | None = None
    ocr: list[OCRZone] | None = None
    metadata: MetadataSignal | None = None
    biometric: BiometricSignal | None = None
    partial_failures: list[str] = field(default_factory=list)
    skipped_families: list[str] = field(default_factory=list)
    family_latencies: dict = field(default_factory=dict)  # {"TAMPER": 812.4, ...}

    @property
    def degraded(self) -> bool:
        return bool(self.partial_failures)


class IAnalysisCapability(ABC):
    """
    Port: Analysis Capability

    Black-box image inspection. Returns the JSON-shaped payload for one
    signal family:
      TAMPER    → {"tamperIndicators": [...]}
      OCR       → {"ocrZones": [...]}
      METADATA  → {"metadata": {...}}
      BIOMETRIC → {"biometric": {...}}
    """

    @abstractmethod
    async def analyze(self, image_bytes: bytes, document_type: str, family: SignalFamily) -> dict:
        """
        Inspect the image for one signal family.

        Args:
            image_bytes: Image in bytes (JPEG/PNG/PDF page).
            document_type: DocumentClass value, used as a prompt hint.
            family: Which signal family to extract.

        Returns:
            JSON-shaped dict for the family.

        Raises:
            TransientExternalError: transport failure or upstream timeout.
        """
        ...
