"""
Test cases for accounts, favorites and reading progress.
"""

import pytest
from datetime import datetime
from bson import ObjectId
from unittest.mock import MagicMock, patch
from pymongo.errors import DuplicateKeyError

from library.accounts import AccountService, normalize_email
from library.errors import InvalidInputError, NotFoundError
from library.security import TokenManager


@pytest.fixture
def tokens():
    return TokenManager(secret_key="test-secret")


@pytest.fixture
def accounts(mock_db, tokens):
    return AccountService(mock_db, tokens)


class TestRegister:
    """Test cases for registration."""

    @pytest.mark.asyncio
    async def test_register(self, accounts, mock_db):
        mock_db.users.insert_one.return_value = MagicMock(inserted_id=ObjectId())

        with patch("library.accounts.hash_password", return_value="hashed-secret"):
            user = await accounts.register("Sari Dewi", " Sari@Perpustakaan.ID ", "rahasia1", "rahasia1")

        assert user.email == "sari@perpustakaan.id"
        assert user.role.value == "user"
        stored = mock_db.users.insert_one.call_args[0][0]
        assert stored["password"] == "hashed-secret"
        assert "password" not in user.dict()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("fields,message", [
        (("", "a@b.id", "rahasia1", "rahasia1"), "All fields are required"),
        (("Sari", "a@b.id", "rahasia1", None), "All fields are required"),
        (("Sari", "a@b.id", "rahasia1", "rahasia2"), "Passwords do not match"),
        (("Sari", "a@b.id", "12345", "12345"), "Password must be at least 6 characters"),
    ])
    async def test_invalid_input(self, accounts, mock_db, fields, message):
        with pytest.raises(InvalidInputError, match=message):
            await accounts.register(*fields)
        mock_db.users.insert_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_existing_email(self, accounts, mock_db):
        mock_db.users.find_one.return_value = {"_id": ObjectId()}

        with pytest.raises(InvalidInputError, match="User already exists"):
            await accounts.register("Sari", "sari@perpustakaan.id", "rahasia1", "rahasia1")

    @pytest.mark.asyncio
    async def test_concurrent_duplicate(self, accounts, mock_db):
        mock_db.users.insert_one.side_effect = DuplicateKeyError("E11000")

        with patch("library.accounts.hash_password", return_value="hashed-secret"):
            with pytest.raises(InvalidInputError, match="User already exists"):
                await accounts.register("Sari", "sari@perpustakaan.id", "rahasia1", "rahasia1")


class TestLogin:
    """Test cases for login."""

    @pytest.mark.asyncio
    async def test_login_issues_token(self, accounts, mock_db, tokens, sample_user_doc):
        mock_db.users.find_one.return_value = sample_user_doc

        with patch("library.accounts.verify_password", return_value=True):
            result = await accounts.login("AHMAD@perpustakaan.id", "rahasia1")

        payload = tokens.decode_access_token(result.token)
        assert payload.user_id == str(sample_user_doc["_id"])
        assert result.user.email == "ahmad@perpustakaan.id"
        mock_db.users.find_one.assert_called_once_with({"email": "ahmad@perpustakaan.id"})

    @pytest.mark.asyncio
    async def test_wrong_password_and_unknown_email_look_the_same(self, accounts, mock_db, sample_user_doc):
        mock_db.users.find_one.return_value = sample_user_doc
        with patch("library.accounts.verify_password", return_value=False):
            with pytest.raises(InvalidInputError) as wrong_password:
                await accounts.login("ahmad@perpustakaan.id", "salah")

        mock_db.users.find_one.return_value = None
        with pytest.raises(InvalidInputError) as unknown_email:
            await accounts.login("siapa@perpustakaan.id", "salah")

        assert wrong_password.value.message == unknown_email.value.message == "Invalid credentials"

    @pytest.mark.asyncio
    async def test_missing_fields(self, accounts):
        with pytest.raises(InvalidInputError, match="Email and password are required"):
            await accounts.login("", "rahasia1")


class TestProfile:
    """Test cases for profile reads and updates."""

    def test_normalize_email(self):
        assert normalize_email("  Budi@Example.COM ") == "budi@example.com"
        assert normalize_email(None) == ""

    @pytest.mark.asyncio
    async def test_profile_with_uploads(self, accounts, mock_db, cursor_factory, sample_user_doc, sample_book_doc, user_id):
        user = dict(sample_user_doc)
        user.pop("password")
        mock_db.users.find_one.return_value = user
        mock_db.books.find.return_value = cursor_factory([sample_book_doc])

        profile = await accounts.get_profile(str(user_id))

        assert profile.name == "Ahmad Pratama"
        assert [book.title for book in profile.uploaded_books] == ["Laskar Pelangi"]
        assert profile.favorites == []
        assert mock_db.books.find.call_args[0][0] == {"uploaded_by": user_id}

    @pytest.mark.asyncio
    async def test_unknown_user(self, accounts, mock_db):
        with pytest.raises(NotFoundError):
            await accounts.get_profile(str(ObjectId()))

    @pytest.mark.asyncio
    async def test_update_name(self, accounts, mock_db, sample_user_doc, user_id):
        mock_db.users.find_one_and_update.return_value = {**sample_user_doc, "name": "Ahmad P."}

        profile = await accounts.update_profile(str(user_id), name=" Ahmad P. ")

        assert profile.name == "Ahmad P."
        assert mock_db.users.find_one_and_update.call_args[0][1] == {"$set": {"name": "Ahmad P."}}

    @pytest.mark.asyncio
    async def test_email_taken(self, accounts, mock_db, user_id):
        mock_db.users.find_one.return_value = {"_id": ObjectId()}

        with pytest.raises(InvalidInputError, match="Email already taken"):
            await accounts.update_profile(str(user_id), email="sari@perpustakaan.id")
        mock_db.users.find_one_and_update.assert_not_called()

    @pytest.mark.asyncio
    async def test_blank_name(self, accounts, user_id):
        with pytest.raises(InvalidInputError, match="Name cannot be empty"):
            await accounts.update_profile(str(user_id), name="  ")


class TestFavorites:
    """Test cases for favorite toggling."""

    @pytest.mark.asyncio
    async def test_toggle_twice_restores_state(self, accounts, mock_db, user_id):
        book_id = ObjectId()
        mock_db.books.count_documents.return_value = 1
        mock_db.favorites.delete_one.side_effect = [
            MagicMock(deleted_count=0),
            MagicMock(deleted_count=1),
        ]

        assert await accounts.toggle_favorite(str(user_id), str(book_id)) is True
        assert await accounts.toggle_favorite(str(user_id), str(book_id)) is False

        mock_db.favorites.insert_one.assert_called_once()
        inserted = mock_db.favorites.insert_one.call_args[0][0]
        assert inserted["user_id"] == user_id
        assert inserted["book_id"] == book_id

    @pytest.mark.asyncio
    async def test_unknown_book(self, accounts, mock_db, user_id):
        mock_db.favorites.delete_one.return_value = MagicMock(deleted_count=0)
        mock_db.books.count_documents.return_value = 0

        with pytest.raises(NotFoundError):
            await accounts.toggle_favorite(str(user_id), str(ObjectId()))
        mock_db.favorites.insert_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_favorites_in_favorited_order(self, accounts, mock_db, cursor_factory, sample_book_doc, user_id):
        older = {**sample_book_doc, "_id": ObjectId(), "title": "Ronggeng Dukuh Paruk"}
        mock_db.favorites.find.return_value = cursor_factory([
            {"book_id": sample_book_doc["_id"]},
            {"book_id": older["_id"]},
        ])
        mock_db.books.find.return_value = cursor_factory([older, sample_book_doc])

        books = await accounts.list_favorites(str(user_id))

        assert [book.title for book in books] == ["Laskar Pelangi", "Ronggeng Dukuh Paruk"]


class TestReadingProgress:
    """Test cases for reading progress."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("progress", [-1, 100.5, "50", None, True])
    async def test_invalid_progress(self, accounts, mock_db, user_id, progress):
        with pytest.raises(InvalidInputError, match="Progress must be a number between 0 and 100"):
            await accounts.update_reading_progress(str(user_id), str(ObjectId()), progress)
        mock_db.reading_progress.update_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_single_upsert(self, accounts, mock_db, user_id):
        book_id = ObjectId()
        mock_db.books.count_documents.return_value = 1

        assert await accounts.update_reading_progress(str(user_id), str(book_id), 42.5) == 42.5

        args, kwargs = mock_db.reading_progress.update_one.call_args
        assert args[0] == {"user_id": user_id, "book_id": book_id}
        assert args[1]["$set"]["progress"] == 42.5
        assert kwargs == {"upsert": True}

    @pytest.mark.asyncio
    async def test_unknown_book(self, accounts, mock_db, user_id):
        with pytest.raises(NotFoundError):
            await accounts.update_reading_progress(str(user_id), str(ObjectId()), 10)

    @pytest.mark.asyncio
    async def test_history_skips_deleted_books(self, accounts, mock_db, cursor_factory, sample_book_doc, user_id):
        mock_db.reading_progress.find.return_value = cursor_factory([
            {"book_id": sample_book_doc["_id"], "progress": 80, "last_read": datetime(2024, 2, 1)},
            {"book_id": ObjectId(), "progress": 20, "last_read": datetime(2024, 1, 1)},
        ])
        mock_db.books.find.return_value = cursor_factory([sample_book_doc])

        history = await accounts.reading_history(str(user_id))

        assert len(history) == 1
        assert history[0].progress == 80
        assert history[0].book.title == "Laskar Pelangi"
