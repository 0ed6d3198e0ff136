"""Tests for the error taxonomy."""

import pytest

from bookport.errors import (
    ExchangeError,
    MalformedInput,
    OwnerNotFound,
    PersistenceFailure,
    SchemaMismatch,
    UnsupportedFormat,
    ValidationError,
)


class TestErrors:
    """Tests for error codes, messages and details."""

    @pytest.mark.parametrize(
        "error,code",
        [
            (UnsupportedFormat("pdf", ["json"]), "UNSUPPORTED_FORMAT"),
            (MalformedInput("csv", "bad quote"), "MALFORMED_INPUT"),
            (SchemaMismatch("missing books"), "SCHEMA_MISMATCH"),
            (OwnerNotFound("ghost"), "OWNER_NOT_FOUND"),
            (ValidationError("books", 0, "title", "required"), "VALIDATION_ERROR"),
            (PersistenceFailure("apply_changes", "disk full"), "PERSISTENCE_FAILURE"),
        ],
    )
    def test_codes(self, error, code):
        assert isinstance(error, ExchangeError)
        assert error.code == code
        assert error.to_dict()["code"] == code

    def test_unsupported_format_lists_supported(self):
        error = UnsupportedFormat("pdf", ["json", "csv", "goodreads"])

        assert "'pdf'" in error.message
        assert error.details["supported_formats"] == ["json", "csv", "goodreads"]

    def test_malformed_input_line(self):
        error = MalformedInput("goodreads", "unterminated quote", line=7)

        assert error.message == "Failed to parse goodreads input at line 7: unterminated quote"
        assert error.details["line"] == 7

    def test_schema_mismatch_location(self):
        error = SchemaMismatch("not an object", category="books", index=2)

        assert "(books[2])" in error.message

    def test_validation_error_fields(self):
        error = ValidationError("ownedBooks", 4, "rating", "must be between 1 and 5", 9)

        assert error.message == (
            "Validation failed for ownedBooks[4].rating: must be between 1 and 5"
        )
        assert (error.category, error.index, error.field) == ("ownedBooks", 4, "rating")
        assert error.to_dict()["details"]["value"] == 9

    def test_str_is_message(self):
        error = OwnerNotFound("ghost")

        assert str(error) == "Owner not found: ghost"
