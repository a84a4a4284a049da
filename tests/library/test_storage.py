"""
Test cases for upload file storage.
"""

import pytest
from unittest.mock import patch

from library.errors import InvalidInputError
from library.storage import FileStorage

ALLOWED = [".pdf", ".epub", ".mobi", ".txt"]


@pytest.fixture
def storage(tmp_path):
    return FileStorage(tmp_path / "books", max_size=1024, allowed_extensions=ALLOWED)


class TestValidateExtension:
    """Test cases for the extension whitelist."""

    @pytest.mark.parametrize("filename,expected", [
        ("buku.pdf", ".pdf"),
        ("BUKU.EPUB", ".epub"),
        ("catatan.txt", ".txt"),
        ("novel.mobi", ".mobi"),
    ])
    def test_allowed(self, storage, filename, expected):
        assert storage.validate_extension(filename) == expected

    @pytest.mark.parametrize("filename", ["virus.exe", "arsip.zip", "tanpa-ekstensi", "", None])
    def test_rejected(self, storage, filename):
        with pytest.raises(InvalidInputError, match="Only PDF, EPUB, MOBI, TXT files are allowed"):
            storage.validate_extension(filename)


class TestSave:
    """Test cases for streaming uploads to disk."""

    @pytest.mark.asyncio
    async def test_save(self, storage, fake_upload):
        info = await storage.save(fake_upload("Laskar Pelangi.PDF", b"%PDF-1.4 isi buku"))

        assert info.name == "Laskar Pelangi.PDF"
        assert info.extension == ".pdf"
        assert info.size == len(b"%PDF-1.4 isi buku")
        assert storage.resolve(info.path) is not None
        assert storage.resolve(info.path).read_bytes() == b"%PDF-1.4 isi buku"

    @pytest.mark.asyncio
    async def test_names_are_unique(self, storage, fake_upload):
        first = await storage.save(fake_upload("buku.txt", b"satu"))
        second = await storage.save(fake_upload("buku.txt", b"dua"))

        assert first.path != second.path

    @pytest.mark.asyncio
    async def test_too_large_leaves_nothing_behind(self, storage, fake_upload):
        with patch("library.storage.CHUNK_SIZE", 100):
            with pytest.raises(InvalidInputError, match="File too large"):
                await storage.save(fake_upload("besar.pdf", b"x" * 2048))

        assert list(storage.books_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_bad_extension_writes_nothing(self, storage, fake_upload):
        with pytest.raises(InvalidInputError):
            await storage.save(fake_upload("virus.exe", b"MZ"))

        assert not storage.books_dir.exists()


class TestDeleteAndResolve:
    """Test cases for removing and locating files."""

    def test_delete(self, storage, tmp_path):
        target = tmp_path / "hapus.pdf"
        target.write_bytes(b"data")

        assert storage.delete(str(target)) is True
        assert not target.exists()

    def test_delete_missing_file(self, storage, tmp_path):
        assert storage.delete(str(tmp_path / "tidak-ada.pdf")) is False

    def test_delete_failure_is_reported(self, storage, tmp_path):
        target = tmp_path / "terkunci.pdf"
        target.write_bytes(b"data")

        with patch("library.storage.Path.unlink", side_effect=PermissionError("denied")):
            assert storage.delete(str(target)) is False
        assert target.exists()

    def test_resolve_missing(self, storage, tmp_path):
        assert storage.resolve(None) is None
        assert storage.resolve(str(tmp_path / "tidak-ada.pdf")) is None
