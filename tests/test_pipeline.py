"""Tests for the pipeline entry points."""

import json
from datetime import date
from pathlib import Path

import pytest

from bookport.db.schemas import Category
from bookport.db.sqlite import Database
from bookport.errors import MalformedInput, OwnerNotFound, UnsupportedFormat
from bookport.export.selector import DateRange
from bookport.formats import ExportFormat
from bookport.imports.orchestrator import ImportOrchestrator
from bookport.pipeline import ExportOptions, decode_upload, infer_format, prepare_export, run_import

OWNER_ID = "owner-1"


@pytest.fixture
def populated(owner_db: Database, sample_snapshot) -> Database:
    ImportOrchestrator(owner_db).run(OWNER_ID, sample_snapshot)
    return owner_db


class TestPrepareExport:
    """Tests for exporting to text."""

    def test_native_export(self, populated: Database, clock):
        text = prepare_export(OWNER_ID, ExportOptions(), store=populated, clock=clock)

        data = json.loads(text)
        assert data["metadata"]["ownerId"] == OWNER_ID
        assert data["metadata"]["exportedAt"].startswith("2024-03-01T12:00:00")
        assert len(data["books"]) == 2

    def test_csv_export_pulls_in_books(self, populated: Database):
        """Test that a flat export includes the books its rows need."""
        options = ExportOptions(format="csv", categories=[Category.OWNED_BOOKS])

        lines = prepare_export(OWNER_ID, options, store=populated).strip().split("\r\n")

        assert lines[0] == "Title,Authors,Status,CurrentPage,Rating,Review"
        assert sorted(line.split(",")[0] for line in lines[1:]) == ["Dune", "The Great Gatsby"]

    def test_goodreads_export(self, populated: Database):
        text = prepare_export(OWNER_ID, ExportOptions(format="goodreads"), store=populated)

        assert "The Great Gatsby" in text
        # Latest session date stands in for Date Read
        assert "2024/01/05" in text

    def test_date_range_limits_sessions(self, populated: Database):
        options = ExportOptions(
            categories=[Category.READING_SESSIONS],
            date_range=DateRange(start=date(2024, 1, 3)),
        )

        data = json.loads(prepare_export(OWNER_ID, options, store=populated))

        assert [s["sessionDate"] for s in data["readingSessions"]] == ["2024-01-05"]
        assert data["books"] == []

    def test_unknown_format(self, populated: Database):
        with pytest.raises(UnsupportedFormat):
            prepare_export(OWNER_ID, ExportOptions(format="pdf"), store=populated)

    def test_unknown_owner(self, db: Database):
        with pytest.raises(OwnerNotFound):
            prepare_export("ghost", store=db)


class TestRoundTripThroughStore:
    """Tests for export followed by import into another owner."""

    def test_export_then_import(self, populated: Database):
        text = prepare_export(OWNER_ID, ExportOptions(), store=populated)

        summary = run_import("owner-2", decode_upload(text, "json"), store=populated)

        assert summary.success
        assert summary.books_added == 2
        assert summary.count(Category.BOOKS).added == 0
        assert len(populated.list_reading_sessions("owner-2")) == 2
        assert populated.get_profile("owner-2").theme == "dark"

    def test_reimport_own_export(self, populated: Database):
        text = prepare_export(OWNER_ID, ExportOptions(), store=populated)

        summary = run_import(OWNER_ID, decode_upload(text.encode("utf-8"), "json"), store=populated)

        assert summary.total_added == 0
        assert summary.total_updated == 0


class TestDecodeUpload:
    def test_malformed(self):
        with pytest.raises(MalformedInput):
            decode_upload("{not json", "json")

    def test_uses_configured_threshold(self, db: Database, monkeypatch):
        """Test that run_import reads the fuzzy threshold from config."""
        from bookport.config import reset_config

        monkeypatch.setenv("BOOKPORT_FUZZY_THRESHOLD", "0.5")
        reset_config()
        header = "Title,Authors,Status,CurrentPage,Rating\n"
        run_import(OWNER_ID, decode_upload(header + "Dune,X,reading,0,\n", "csv"), store=db)

        summary = run_import(
            OWNER_ID, decode_upload(header + "Dunes,X,reading,0,\n", "csv"), store=db
        )

        assert summary.count(Category.BOOKS).added == 0
        reset_config()


class TestInferFormat:
    @pytest.mark.parametrize(
        "name,text,expected",
        [
            ("export.json", None, ExportFormat.NATIVE),
            ("library.csv", "Title,Authors,Status,CurrentPage,Rating\n", ExportFormat.TABULAR),
            (
                "goodreads_library_export.csv",
                "Book Id,Title,Author,My Rating,Date Read,Exclusive Shelf\n",
                ExportFormat.GOODREADS,
            ),
            ("library.CSV", None, ExportFormat.TABULAR),
            (
                "export.csv",
                '"book id","title","author","my rating","date read"\n',
                ExportFormat.GOODREADS,
            ),
        ],
    )
    def test_infer(self, name, text, expected):
        assert infer_format(Path(name), text) == expected

    def test_unknown_suffix_uses_default(self, monkeypatch):
        from bookport.config import reset_config

        monkeypatch.setenv("BOOKPORT_DEFAULT_FORMAT", "goodreads")
        reset_config()
        try:
            assert infer_format(Path("export.txt")) == ExportFormat.GOODREADS
        finally:
            reset_config()
