"""
Test cases for comments and rating aggregation.
"""

import pytest
from bson import ObjectId
from unittest.mock import MagicMock
from pymongo.errors import DuplicateKeyError

from library.errors import InvalidInputError, NotFoundError
from library.ratings import RatingAggregator, validate_comment


@pytest.fixture
def aggregator(mock_db):
    return RatingAggregator(mock_db)


class TestValidateComment:
    """Test cases for comment input validation."""

    def test_valid(self):
        assert validate_comment("  Bagus sekali  ", 4) == ("Bagus sekali", 4)

    @pytest.mark.parametrize("comment,rating", [("", 4), ("   ", 4), (None, 4), ("Bagus", None)])
    def test_missing_fields(self, comment, rating):
        with pytest.raises(InvalidInputError, match="Comment and rating are required"):
            validate_comment(comment, rating)

    @pytest.mark.parametrize("rating", [0, 6, -1, True, "5", 4.5])
    def test_rating_out_of_range(self, rating):
        with pytest.raises(InvalidInputError, match="Rating must be between 1 and 5"):
            validate_comment("Bagus", rating)


class TestAddComment:
    """Test cases for adding comments."""

    @pytest.mark.asyncio
    async def test_rating_recomputed_from_all_comments(
        self, aggregator, mock_db, cursor_factory, sample_user_doc, user_id
    ):
        book_id = ObjectId()
        mock_db.books.count_documents.return_value = 1
        mock_db.comments.insert_one.return_value = MagicMock(inserted_id=ObjectId())
        mock_db.comments.find.return_value = cursor_factory([{"rating": 5}, {"rating": 4}, {"rating": 5}])
        mock_db.users.find_one.return_value = sample_user_doc

        comment = await aggregator.add_comment(str(book_id), str(user_id), "Sangat menginspirasi!", 5)

        assert comment.rating == 5
        assert comment.book_id == str(book_id)
        assert comment.user.name == "Ahmad Pratama"
        mock_db.comments.find.assert_called_once_with({"book_id": book_id}, {"rating": 1})
        query, update = mock_db.books.update_one.call_args[0]
        assert query == {"_id": book_id}
        assert update["$set"]["rating"]["count"] == 3
        assert update["$set"]["rating"]["average"] == pytest.approx(14 / 3)

    @pytest.mark.asyncio
    async def test_second_comment_rejected(self, aggregator, mock_db, user_id):
        mock_db.books.count_documents.return_value = 1
        mock_db.comments.insert_one.side_effect = DuplicateKeyError("E11000 duplicate key error")

        with pytest.raises(InvalidInputError, match="already commented"):
            await aggregator.add_comment(str(ObjectId()), str(user_id), "Lagi", 3)
        mock_db.books.update_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_book(self, aggregator, mock_db, user_id):
        mock_db.books.count_documents.return_value = 0

        with pytest.raises(NotFoundError):
            await aggregator.add_comment(str(ObjectId()), str(user_id), "Bagus", 4)
        mock_db.comments.insert_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_rating_checked_first(self, aggregator, mock_db, user_id):
        with pytest.raises(InvalidInputError):
            await aggregator.add_comment(str(ObjectId()), str(user_id), "Bagus", 9)
        mock_db.books.count_documents.assert_not_called()


class TestRecompute:
    """Test cases for rating summary rebuilds."""

    @pytest.mark.asyncio
    async def test_no_comments(self, aggregator, mock_db):
        book_id = ObjectId()

        summary = await aggregator.recompute(book_id)

        assert summary.average == 0
        assert summary.count == 0
        mock_db.books.update_one.assert_called_once_with(
            {"_id": book_id}, {"$set": {"rating": {"average": 0.0, "count": 0}}}
        )


class TestListComments:
    """Test cases for comment listing."""

    @pytest.mark.asyncio
    async def test_page_with_authors(self, aggregator, mock_db, cursor_factory, sample_user_doc, user_id):
        book_id = ObjectId()
        docs = [
            {"_id": ObjectId(), "book_id": book_id, "user_id": user_id, "comment": "Bagus", "rating": 4},
        ]
        cursor = cursor_factory(docs)
        mock_db.comments.find.return_value = cursor
        mock_db.comments.count_documents.return_value = 11
        mock_db.users.find.return_value = cursor_factory([sample_user_doc])

        page = await aggregator.list_comments(str(book_id), page=2)

        assert page.pagination.pages == 2
        assert page.pagination.limit == 10
        assert page.comments[0].user.name == "Ahmad Pratama"
        cursor.skip.assert_called_once_with(10)
