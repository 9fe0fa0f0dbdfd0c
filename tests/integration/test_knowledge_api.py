"""Integration tests for knowledge-base upload and link endpoints.

Uploads go through the real parser and land in the temporary settings store.
"""

import io

import pytest_check as check
from httpx import AsyncClient
from pypdf import PdfWriter

from chatrelay.knowledge.parser import MAX_FILE_SIZE
from chatrelay.models.schemas import KnowledgeUploadResponse
from chatrelay.store.settings_store import SettingsStore


def blank_pdf() -> bytes:
    writer = PdfWriter()
    writer.add_blank_page(width=200, height=200)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


class TestKnowledgeFileUpload:
    """Tests for POST/DELETE /api/knowledge/files."""

    async def test_upload_text_file(
        self, api_client: AsyncClient, settings_store: SettingsStore
    ) -> None:
        """A text file is stored with its content and size."""
        response = await api_client.post(
            "/api/knowledge/files",
            files={"file": ("koi.md", b"# Koi\nKoi are carp.", "text/markdown")},
        )

        check.equal(response.status_code, 200)
        data = KnowledgeUploadResponse.model_validate(response.json())
        check.is_true(data.success)
        check.equal(data.file.filename, "koi.md")
        check.equal(data.file.content, "# Koi\nKoi are carp.")
        check.equal(data.file.size, 19)
        check.is_none(data.warning)

        stored = settings_store.get().knowledge_base_files
        check.equal([f.id for f in stored], [data.file.id])

    async def test_upload_blank_pdf_warns(self, api_client: AsyncClient) -> None:
        response = await api_client.post(
            "/api/knowledge/files",
            files={"file": ("scan.pdf", blank_pdf(), "application/pdf")},
        )

        check.equal(response.status_code, 200)
        check.is_in("no extractable text", response.json()["warning"])

    async def test_rejects_unsupported_type(self, api_client: AsyncClient) -> None:
        response = await api_client.post(
            "/api/knowledge/files",
            files={"file": ("photo.png", b"\x89PNG", "image/png")},
        )

        check.equal(response.status_code, 400)
        check.is_in("Unsupported file type", response.json()["detail"])

    async def test_rejects_empty_file(self, api_client: AsyncClient) -> None:
        response = await api_client.post(
            "/api/knowledge/files",
            files={"file": ("empty.txt", b"", "text/plain")},
        )

        check.equal(response.status_code, 400)
        check.is_in("Empty file", response.json()["detail"])

    async def test_rejects_invalid_json(
        self, api_client: AsyncClient, settings_store: SettingsStore
    ) -> None:
        response = await api_client.post(
            "/api/knowledge/files",
            files={"file": ("data.json", b"{oops", "application/json")},
        )

        check.equal(response.status_code, 400)
        check.equal(settings_store.get().knowledge_base_files, [])

    async def test_rejects_oversized_file(self, api_client: AsyncClient) -> None:
        response = await api_client.post(
            "/api/knowledge/files",
            files={"file": ("big.txt", b"a" * (MAX_FILE_SIZE + 1), "text/plain")},
        )

        check.equal(response.status_code, 413)
        check.is_in("exceeds maximum", response.json()["detail"])

    async def test_delete_file(self, api_client: AsyncClient) -> None:
        upload = await api_client.post(
            "/api/knowledge/files",
            files={"file": ("koi.txt", b"Koi", "text/plain")},
        )
        file_id = upload.json()["file"]["id"]

        response = await api_client.delete(f"/api/knowledge/files/{file_id}")

        check.equal(response.status_code, 200)
        check.equal(response.json()["data"]["knowledgeBaseFiles"], [])

    async def test_delete_missing_file(self, api_client: AsyncClient) -> None:
        response = await api_client.delete("/api/knowledge/files/missing")

        assert response.status_code == 404


class TestKnowledgeUrls:
    """Tests for POST/DELETE /api/knowledge/urls."""

    async def test_add_url_defaults_title_to_host(self, api_client: AsyncClient) -> None:
        response = await api_client.post(
            "/api/knowledge/urls", json={"url": " https://koi.test/care "}
        )

        check.equal(response.status_code, 200)
        urls = response.json()["data"]["knowledgeBaseUrls"]
        check.equal(len(urls), 1)
        check.equal(urls[0]["url"], "https://koi.test/care")
        check.equal(urls[0]["title"], "koi.test")

    async def test_rejects_non_http_url(self, api_client: AsyncClient) -> None:
        response = await api_client.post("/api/knowledge/urls", json={"url": "file:///etc/passwd"})

        check.equal(response.status_code, 400)
        check.is_in("Invalid URL", response.json()["detail"])

    async def test_delete_url(self, api_client: AsyncClient) -> None:
        added = await api_client.post(
            "/api/knowledge/urls",
            json={"url": "https://koi.test", "title": "Koi", "description": "Care guide"},
        )
        url_id = added.json()["data"]["knowledgeBaseUrls"][0]["id"]

        check.equal((await api_client.delete(f"/api/knowledge/urls/{url_id}")).status_code, 200)
        check.equal((await api_client.delete(f"/api/knowledge/urls/{url_id}")).status_code, 404)
