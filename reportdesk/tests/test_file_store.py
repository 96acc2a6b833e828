"""
Tests for report file storage
"""
import pytest

from reportdesk.core.errors import NotFound, ValidationFailed
from reportdesk.services.file_store import LocalFileStore, validate_pdf
from reportdesk.tests.factories import pdf_bytes


@pytest.mark.parametrize("data, content_type", [
    (pdf_bytes(), "text/plain"),
    (pdf_bytes(), None),
    (b"", "application/pdf"),
    (b"PK\x03\x04 zipped", "application/pdf"),
])
def test_validate_pdf_rejects(data, content_type):
    with pytest.raises(ValidationFailed) as exc_info:
        validate_pdf(data, content_type, max_bytes=1024 * 1024)
    assert exc_info.value.field == "file"


def test_validate_pdf_size_limit():
    validate_pdf(pdf_bytes(1024), "application/pdf", max_bytes=1024)
    with pytest.raises(ValidationFailed) as exc_info:
        validate_pdf(pdf_bytes(1025), "application/pdf", max_bytes=1024)
    assert "too large" in exc_info.value.detail


def test_store_and_open(tmp_path):
    store = LocalFileStore(root=str(tmp_path / "uploads"))
    handle = store.store(pdf_bytes(), "application/pdf", "week42.pdf")

    assert handle.startswith("/uploads/")
    assert handle.endswith(".pdf")
    assert store.exists(handle)
    with store.open(handle) as f:
        assert f.read() == pdf_bytes()


def test_store_uses_unique_names(tmp_path):
    store = LocalFileStore(root=str(tmp_path))
    first = store.store(pdf_bytes(), "application/pdf", "same.pdf")
    second = store.store(pdf_bytes(), "application/pdf", "same.pdf")
    assert first != second
    assert len(list(tmp_path.iterdir())) == 2


def test_rejected_upload_writes_nothing(tmp_path):
    store = LocalFileStore(root=str(tmp_path / "uploads"), max_bytes=100)
    with pytest.raises(ValidationFailed):
        store.store(pdf_bytes(101), "application/pdf")
    assert not (tmp_path / "uploads").exists()


@pytest.mark.parametrize("handle", [
    "",
    "/uploads/",
    "/uploads/../secret.pdf",
    "/elsewhere/file.pdf",
    "/uploads/missing.pdf",
])
def test_bad_handles(tmp_path, handle):
    store = LocalFileStore(root=str(tmp_path))
    assert store.exists(handle) is False
    with pytest.raises(NotFound):
        store.open(handle)
