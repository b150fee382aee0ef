"""
Tests for the infrastructure adapters: cipher, HTTP ledger, HTTP archive,
Gemini payload parsing.
"""

import json

import anyio
import httpx
import pytest

from docseal.core.errors import NotFoundError, TransientExternalError, ValidationError
from docseal.infrastructure.analysis.gemini_analysis import detect_mime_type, parse_json_payload
from docseal.infrastructure.ledger.http_ledger_client import HttpLedgerClient
from docseal.infrastructure.storage.encryption import NONCE_SIZE, DocumentCipher
from docseal.infrastructure.storage.http_archive_store import HttpArchiveStore

KEY_HEX = "11" * 32


class TestDocumentCipher:

    def test_decrypts_what_it_encrypts(self):
        cipher = DocumentCipher.from_hex(KEY_HEX)
        envelope = cipher.encrypt(b"passport scan", associated_data="doc-1")

        assert envelope[NONCE_SIZE:] != b"passport scan"
        assert cipher.decrypt(envelope, associated_data="doc-1") == b"passport scan"

    def test_nonce_is_fresh_per_call(self):
        cipher = DocumentCipher.from_hex(KEY_HEX)
        assert cipher.encrypt(b"same", "doc-1") != cipher.encrypt(b"same", "doc-1")

    def test_blob_is_bound_to_its_document(self):
        cipher = DocumentCipher.from_hex(KEY_HEX)
        envelope = cipher.encrypt(b"deed", associated_data="doc-1")
        with pytest.raises(ValidationError):
            cipher.decrypt(envelope, associated_data="doc-2")

    def test_truncated_payload(self):
        with pytest.raises(ValidationError):
            DocumentCipher.from_hex(KEY_HEX).decrypt(b"short")

    def test_bad_keys(self):
        with pytest.raises(ValueError):
            DocumentCipher.from_hex("zz" * 32)
        with pytest.raises(ValueError):
            DocumentCipher.from_hex("11" * 16)

    def test_empty_key_generates_ephemeral_one(self):
        cipher = DocumentCipher.from_hex("")
        assert cipher.decrypt(cipher.encrypt(b"x")) == b"x"


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestHttpLedgerClient:

    def test_attest_posts_payload_and_parses_receipt(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"ref": "att_1", "confirmed": False, "transactionId": "tx9", "slot": 42})

        async def run():
            async with _client(handler) as client:
                ledger = HttpLedgerClient(client, "http://ledger.test/", api_key="secret")
                return await ledger.attest("schema", "issuer", "owner-1", {"documentId": "doc-1"})

        receipt = anyio.run(run)
        assert seen["path"] == "/attestations"
        assert seen["auth"] == "Bearer secret"
        assert seen["body"]["holder"] == "owner-1"
        assert receipt.ref == "att_1"
        assert not receipt.confirmed
        assert receipt.transaction_id == "tx9"
        assert receipt.details == {"slot": 42}

    @pytest.mark.parametrize("status", [429, 500, 503])
    def test_retryable_statuses_are_transient(self, status):
        async def run():
            async with _client(lambda request: httpx.Response(status)) as client:
                await HttpLedgerClient(client, "http://ledger.test").mint_token({}, "owner-1")

        with pytest.raises(TransientExternalError):
            anyio.run(run)

    def test_client_error_is_not_transient(self):
        async def run():
            async with _client(lambda request: httpx.Response(400, json={"error": "bad schema"})) as client:
                await HttpLedgerClient(client, "http://ledger.test").mint_token({}, "owner-1")

        with pytest.raises(httpx.HTTPStatusError):
            anyio.run(run)

    def test_connection_failure_is_transient(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async def run():
            async with _client(handler) as client:
                await HttpLedgerClient(client, "http://ledger.test").attest("s", "i", "h", {})

        with pytest.raises(TransientExternalError):
            anyio.run(run)

    def test_verify_ownership(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"owned": request.url.params["owner"] == "owner-1"})

        async def run():
            async with _client(handler) as client:
                ledger = HttpLedgerClient(client, "http://ledger.test")
                return await ledger.verify_ownership("tok_1", "owner-1"), await ledger.verify_ownership("tok_1", "x")

        assert anyio.run(run) == (True, False)


class TestHttpArchiveStore:

    def test_put_sends_tags_as_headers(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["doc"] = request.headers.get("X-Tag-Document-ID")
            seen["body"] = request.content
            return httpx.Response(201, json={"locator": "ar://abc"})

        async def run():
            async with _client(handler) as client:
                return await HttpArchiveStore(client, "http://archive.test").put(b"cipher", {"Document-ID": "doc-1"})

        assert anyio.run(run) == "ar://abc"
        assert seen == {"doc": "doc-1", "body": b"cipher"}

    def test_missing_blob(self):
        async def run():
            async with _client(lambda request: httpx.Response(404)) as client:
                await HttpArchiveStore(client, "http://archive.test").get("nope")

        with pytest.raises(NotFoundError):
            anyio.run(run)

    def test_gateway_error_is_transient(self):
        async def run():
            async with _client(lambda request: httpx.Response(502)) as client:
                await HttpArchiveStore(client, "http://archive.test").put(b"x", {})

        with pytest.raises(TransientExternalError):
            anyio.run(run)


class TestGeminiPayloads:

    def test_strips_markdown_fence(self):
        raw = '```json\n{"ocrZones": []}\n```'
        assert parse_json_payload(raw) == {"ocrZones": []}

    def test_rejects_non_objects(self):
        with pytest.raises(ValueError):
            parse_json_payload("[1, 2]")
        with pytest.raises(ValueError):
            parse_json_payload("not json")

    @pytest.mark.parametrize("head,mime", [
        (b"\x89PNG\r\n", "image/png"),
        (b"%PDF-1.7", "application/pdf"),
        (b"RIFF\x00\x00\x00\x00WEBP", "image/webp"),
        (b"\xff\xd8\xff", "image/jpeg"),
    ])
    def test_detect_mime_type(self, head, mime):
        assert detect_mime_type(head) == mime
