"""
Use Case: Collect Raw Signals

Fans out one analysis call per signal family (tamper, OCR,
metadata/security-features, biometric), each with its own timeout,
and joins them. A failing family degrades to empty and is flagged in
`partial_failures`; it never aborts the other three.
"""

import asyncio
import logging
import time

from docseal.core.entities.document import DocumentClass, PORTRAIT_CLASSES, TAMPER_EXEMPT_CLASSES
from docseal.core.errors import TransientExternalError
from docseal.core.interfaces.analysis_capability import (
    BiometricSignal,
    IAnalysisCapability,
    MetadataSignal,
    OCRZone,
    RawSignals,
    SignalFamily,
    TamperIndicator,
)

logger = logging.getLogger(__name__)


def _parse_tamper(payload: dict) -> list[TamperIndicator]:
    return [TamperIndicator.from_payload(item) for item in payload["tamperIndicators"]]


def _parse_ocr(payload: dict) -> list[OCRZone]:
    return [OCRZone.from_payload(item) for item in payload["ocrZones"]]


def _parse_metadata(payload: dict) -> MetadataSignal:
    return MetadataSignal.from_payload(payload["metadata"])


def _parse_biometric(payload: dict) -> BiometricSignal:
    return BiometricSignal.from_payload(payload["biometric"])


PARSERS = {
    SignalFamily.TAMPER: _parse_tamper,
    SignalFamily.OCR: _parse_ocr,
    SignalFamily.METADATA: _parse_metadata,
    SignalFamily.BIOMETRIC: _parse_biometric,
}

# Malformed payloads surface as one of these while parsing.
MALFORMED = (KeyError, TypeError, ValueError, AttributeError)


class RawSignalCollector:
    """
    Use Case: image → four signal families, concurrently.

    The analysis capability is injected; nothing else is shared
    between families.
    """

    def __init__(self, analysis: IAnalysisCapability, timeout_seconds: float = 30.0):
        self._analysis = analysis
        self._timeout = timeout_seconds

    def plan(self, document_class: DocumentClass, biometric: bool | None = None) -> tuple[list[SignalFamily], list[SignalFamily]]:
        """
        Decide which families run for this class.

        Returns:
            (families to run, families skipped by policy)
        """
        run = [SignalFamily.OCR, SignalFamily.METADATA]
        skipped = []

        if document_class in TAMPER_EXEMPT_CLASSES:
            skipped.append(SignalFamily.TAMPER)
        else:
            run.insert(0, SignalFamily.TAMPER)

        wants_biometric = document_class in PORTRAIT_CLASSES if biometric is None else biometric
        if wants_biometric:
            run.append(SignalFamily.BIOMETRIC)
        else:
            skipped.append(SignalFamily.BIOMETRIC)

        return run, skipped

    async def collect(
        self,
        image_bytes: bytes,
        document_class: DocumentClass,
        biometric: bool | None = None,
    ) -> RawSignals:
        """
        Run the planned families in parallel and assemble RawSignals.

        Args:
            image_bytes: Raw upload.
            document_class: Drives the family plan and the prompt hint.
            biometric: Force the biometric family on/off (None → by class).
        """
        run, skipped = self.plan(document_class, biometric)
        signals = RawSignals(skipped_families=[f.value for f in skipped])

        outcomes = await asyncio.gather(
            *(self._run_family(image_bytes, document_class, family) for family in run)
        )

        for family, (value, latency_ms) in zip(run, outcomes):
            signals.family_latencies[family.value] = latency_ms
            if value is None:
                signals.partial_failures.append(family.value)
                continue
            if family is SignalFamily.TAMPER:
                signals.tamper = value
            elif family is SignalFamily.OCR:
                signals.ocr = value
            elif family is SignalFamily.METADATA:
                signals.metadata = value
            else:
                signals.biometric = value

        if signals.partial_failures:
            logger.warning(
                f"Signal collection degraded for {document_class.value}: "
                f"failed={signals.partial_failures}"
            )
        return signals

    async def _run_family(
        self,
        image_bytes: bytes,
        document_class: DocumentClass,
        family: SignalFamily,
    ) -> tuple[object | None, float]:
        """One family call. Returns (parsed value or None on failure, latency ms)."""
        t0 = time.perf_counter()
        try:
            payload = await asyncio.wait_for(
                self._analysis.analyze(image_bytes, document_class.value, family),
                timeout=self._timeout,
            )
            value = PARSERS[family](payload)
        except asyncio.TimeoutError:
            logger.warning(f"{family.value} analysis timed out after {self._timeout}s")
            value = None
        except TransientExternalError as e:
            logger.warning(f"{family.value} analysis unavailable: {e}")
            value = None
        except MALFORMED as e:
            logger.warning(f"{family.value} analysis returned a malformed payload: {e!r}")
            value = None
        except Exception:
            logger.exception(f"{family.value} analysis failed unexpectedly")
            value = None
        return value, round((time.perf_counter() - t0) * 1000, 2)
