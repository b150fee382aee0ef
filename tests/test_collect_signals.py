"""
Tests for RawSignalCollector: fan-out, per-family timeouts, degradation.
"""

import anyio

from docseal.core.entities.document import DocumentClass
from docseal.core.errors import TransientExternalError
from docseal.core.interfaces.analysis_capability import SignalFamily
from docseal.core.use_cases.collect_signals import RawSignalCollector
from tests.fakes import FakeAnalysis, clean_payloads

IMAGE = b"\xff\xd8\xff\xe0fake-jpeg"


def _collect(analysis, document_class=DocumentClass.NATIONAL_ID, timeout=1.0, biometric=None):
    collector = RawSignalCollector(analysis, timeout_seconds=timeout)

    async def run():
        return await collector.collect(IMAGE, document_class, biometric=biometric)

    return anyio.run(run)


class TestFamilyPlan:

    def test_portrait_document_runs_all_families(self):
        analysis = FakeAnalysis()
        signals = _collect(analysis)

        assert {f for _, f in analysis.calls} == set(SignalFamily)
        assert signals.tamper == []
        assert signals.ocr[0].text == "JOHN DOE"
        assert signals.metadata.document_quality == "GOOD"
        assert signals.biometric.has_face_image
        assert not signals.degraded

    def test_certificate_skips_tamper_and_biometric(self):
        analysis = FakeAnalysis()
        signals = _collect(analysis, DocumentClass.BIRTH_CERTIFICATE)

        assert analysis.calls_for(SignalFamily.TAMPER) == 0
        assert analysis.calls_for(SignalFamily.BIOMETRIC) == 0
        assert sorted(signals.skipped_families) == ["BIOMETRIC", "TAMPER"]
        assert signals.partial_failures == []

    def test_biometric_can_be_forced_on(self):
        analysis = FakeAnalysis()
        signals = _collect(analysis, DocumentClass.LAND_TITLE, biometric=True)
        assert analysis.calls_for(SignalFamily.BIOMETRIC) == 1
        assert signals.biometric is not None

    def test_document_type_is_passed_as_hint(self):
        analysis = FakeAnalysis()
        _collect(analysis, DocumentClass.PASSPORT)
        assert {hint for hint, _ in analysis.calls} == {"PASSPORT"}


class TestDegradation:

    def test_timeout_degrades_only_that_family(self):
        analysis = FakeAnalysis(delays={SignalFamily.TAMPER: 2.0})
        signals = _collect(analysis, timeout=0.05)

        assert signals.partial_failures == ["TAMPER"]
        assert signals.tamper is None
        assert signals.ocr is not None
        assert signals.metadata is not None
        assert signals.biometric is not None

    def test_families_run_concurrently(self):
        delays = {family: 0.2 for family in SignalFamily}
        analysis = FakeAnalysis(delays=delays)
        signals = _collect(analysis)
        assert not signals.degraded
        # four sequential calls would take 800ms
        assert max(signals.family_latencies.values()) < 700

    def test_transient_error_is_a_partial_failure(self):
        analysis = FakeAnalysis(failures={SignalFamily.OCR: TransientExternalError("gemini", "503")})
        signals = _collect(analysis)
        assert signals.partial_failures == ["OCR"]
        assert signals.ocr is None

    def test_malformed_payload_is_a_partial_failure(self):
        payloads = clean_payloads()
        payloads[SignalFamily.METADATA] = {"unexpected": True}
        signals = _collect(FakeAnalysis(payloads=payloads))
        assert signals.partial_failures == ["METADATA"]

    def test_out_of_range_confidence_is_malformed(self):
        payloads = clean_payloads()
        payloads[SignalFamily.OCR] = {"ocrZones": [{"text": "X", "confidence": 7.5}]}
        signals = _collect(FakeAnalysis(payloads=payloads))
        assert signals.partial_failures == ["OCR"]

    def test_unexpected_error_does_not_abort_collection(self):
        analysis = FakeAnalysis(failures={SignalFamily.BIOMETRIC: RuntimeError("boom")})
        signals = _collect(analysis)
        assert signals.partial_failures == ["BIOMETRIC"]
        assert signals.tamper == []
