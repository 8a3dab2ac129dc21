"""Tests for source documents (temp-file lifecycle and MIME detection)"""

import os

import pytest

from exceptions import DocumentError
from generation.documents import SourceDocument, get_mime_type, total_size


class TestMimeType:

    @pytest.mark.parametrize("name,expected", [
        ("notes.pdf", "application/pdf"),
        ("NOTES.PDF", "application/pdf"),
        ("readme.md", "text/markdown"),
        ("transcript_1.txt", "text/plain"),
        ("essay.docx", "application/vnd.openxmlformats-officedocument.wordprocessingml.document"),
        ("archive.zip", "application/octet-stream"),
        ("no_extension", "application/octet-stream"),
    ])
    def test_from_extension(self, name, expected):
        assert get_mime_type(name) == expected


class TestSourceDocument:

    def test_from_upload(self, tmp_path):
        doc = SourceDocument.from_upload("notes.pdf", b"%PDF-1.4 data", temp_dir=str(tmp_path))

        assert doc.name == "notes.pdf"
        assert doc.size_bytes == len(b"%PDF-1.4 data")
        assert doc.mime_type == "application/pdf"
        assert os.path.basename(doc.path).endswith("_notes.pdf")
        assert doc.read_bytes() == b"%PDF-1.4 data"

    def test_upload_names_are_unique(self, tmp_path):
        first = SourceDocument.from_upload("notes.pdf", b"a", temp_dir=str(tmp_path))
        second = SourceDocument.from_upload("notes.pdf", b"b", temp_dir=str(tmp_path))
        assert first.path != second.path

    def test_upload_path_components_stripped(self, tmp_path):
        doc = SourceDocument.from_upload("../../etc/passwd", b"x", temp_dir=str(tmp_path))
        assert os.path.dirname(doc.path) == str(tmp_path)

    def test_empty_upload_rejected(self, tmp_path):
        with pytest.raises(DocumentError):
            SourceDocument.from_upload("empty.pdf", b"", temp_dir=str(tmp_path))
        assert os.listdir(str(tmp_path)) == []

    def test_from_transcript(self, tmp_path):
        doc = SourceDocument.from_transcript("https://youtu.be/x", "héllo world ", temp_dir=str(tmp_path))

        assert doc.name.startswith("transcript_") and doc.name.endswith(".txt")
        assert doc.mime_type == "text/plain"
        assert doc.size_bytes == len("héllo world ".encode("utf-8"))

    def test_blank_transcript_rejected(self, tmp_path):
        with pytest.raises(DocumentError):
            SourceDocument.from_transcript("https://youtu.be/x", "   ", temp_dir=str(tmp_path))

    def test_read_missing_file(self, tmp_path):
        doc = SourceDocument(name="gone.pdf", path=str(tmp_path / "gone.pdf"), size_bytes=10)
        with pytest.raises(DocumentError) as exc_info:
            doc.read_bytes()
        assert exc_info.value.document_name == "gone.pdf"

    def test_cleanup_is_idempotent(self, tmp_path):
        doc = SourceDocument.from_upload("notes.txt", b"text", temp_dir=str(tmp_path))
        doc.cleanup()
        doc.cleanup()
        assert not os.path.exists(doc.path)

    def test_total_size(self, make_document):
        docs = [make_document("a.pdf", size_bytes=10), make_document("b.pdf", size_bytes=32)]
        assert total_size(docs) == 42
