"""Unit tests for note normalization."""
import pytest
from pydantic import ValidationError

from flashcard_import.data_objects import CardKind, Difficulty, FlashcardRecord
from flashcard_import.normalizer import (
    NoteContent,
    build_record,
    make_record_id,
    normalize_note,
    normalize_rows,
    parse_tags,
    resolve_content,
)
from flashcard_import.package_models import ContainerVariant, NoteModel, RawNoteRow
from flashcard_import.settings import ImportSettings


@pytest.fixture
def models():
    return {
        1: NoteModel(id=1, name="Basic", field_names=["Front", "Back"]),
        2: NoteModel(id=2, name="Basic (and reversed card)", field_names=["Front", "Back"]),
        3: NoteModel(id=3, name="Cloze", field_names=["Text", "Back Extra"]),
    }


class TestHelpers:
    """Test suite for small normalization helpers."""

    def test_record_id_is_deterministic(self):
        """Test ids built from source id and position."""
        assert make_record_id(1001, 0) == "imported_1001_0"
        assert make_record_id(1001, 0) == make_record_id(1001, 0)
        assert make_record_id(None, 3) == "imported_note_3"

    def test_parse_tags(self):
        """Test Anki's space separated tag strings."""
        assert parse_tags(" geo  europe geo ") == ["geo", "europe"]
        assert parse_tags(["a", " b ", ""]) == ["a", "b"]
        assert parse_tags(None) == []


class TestResolveContent:
    """Test suite for resolve_content."""

    def test_positional_without_names(self):
        """Test the positional layout when no model is known."""
        assert resolve_content(["Q", "A", "N"]) == NoteContent("Q", "A", "N")

    def test_named_cloze_fields(self):
        """Test role mapping for the stock cloze model."""
        content = resolve_content(
            ["{{c1::Paris}} is the capital", "France"],
            ["Text", "Back Extra"],
            ContainerVariant.SUPPORTED_2_1,
        )
        assert content == NoteContent("{{c1::Paris}} is the capital", "", "France")

    def test_named_fields_out_of_order(self):
        """Test that roles, not positions, decide front and back."""
        content = resolve_content(["A", "Q"], ["Back", "Front"], ContainerVariant.SUPPORTED_2_1)
        assert content.primary == "Q"
        assert content.secondary == "A"

    def test_media_not_copied_into_extra(self):
        """Test that media roles stay out of the extra text."""
        content = resolve_content(
            ["Q", "A", "[sound:a.mp3]"], ["Front", "Back", "MyMedia"], ContainerVariant.SUPPORTED_2_1
        )
        assert content.extra == ""

    def test_unrecognised_names_fall_back_to_positions(self):
        """Test custom models with no stock field names."""
        content = resolve_content(["Q", "A"], ["Question", "Answer"], ContainerVariant.SUPPORTED_2_1)
        assert content == NoteContent("Q", "A", "")


class TestBuildRecord:
    """Test suite for build_record."""

    def test_basic_record(self):
        """Test a plain two-sided record with defaults."""
        record = build_record(
            source_id=7,
            position=2,
            content=NoteContent("Q", "A", ""),
            card_kind=CardKind.BASIC,
        )
        assert record.id == "imported_7_2"
        assert record.front == "Q"
        assert record.back == "A"
        assert record.extra is None
        assert record.tags == set()
        assert record.category == "Imported"
        assert record.difficulty == Difficulty.MEDIUM

    def test_cloze_record_moves_back_into_extra(self):
        """Test that cloze records carry their text in cloze_text."""
        record = build_record(
            source_id=1,
            position=0,
            content=NoteContent("{{c1::x}}", "hint", "more"),
            card_kind=CardKind.CLOZE,
            tags=["b", "a"],
        )
        assert record.cloze_text == "{{c1::x}}"
        assert record.front is None and record.back is None
        assert record.extra == "hint more"
        assert record.category == "b"

    def test_settings_defaults(self):
        """Test configured fallbacks for category and difficulty."""
        settings = ImportSettings(default_category="Inbox", default_difficulty=Difficulty.HARD)
        record = build_record(
            source_id=1,
            position=0,
            content=NoteContent("Q", "A"),
            card_kind=CardKind.BASIC,
            settings=settings,
        )
        assert record.category == "Inbox"
        assert record.difficulty == Difficulty.HARD

    def test_missing_back_rejected(self):
        """Test that a basic record without a back cannot be built."""
        with pytest.raises(ValueError):
            build_record(
                source_id=1, position=0, content=NoteContent("Q", ""), card_kind=CardKind.BASIC
            )

    def test_record_invariant_on_direct_construction(self):
        """Test the model validator itself."""
        with pytest.raises(ValidationError):
            FlashcardRecord(id="x", card_kind=CardKind.CLOZE, front="Q", back="A")


class TestNormalizeNote:
    """Test suite for normalize_note and normalize_rows."""

    def test_note_with_model(self, models):
        """Test a reversed note with tags."""
        row = RawNoteRow(note_id=5, field_blob="Q\x1fA", tags=" geo ", model_id=2)
        record = normalize_note(row, 0, variant=ContainerVariant.SUPPORTED_2_1, models=models)
        assert record.id == "imported_5_0"
        assert record.card_kind == CardKind.BASIC_REVERSED
        assert (record.front, record.back) == ("Q", "A")
        assert record.tags == {"geo"}
        assert record.category == "geo"
        assert "anki21" in record.provenance
        assert "5" in record.provenance

    def test_cloze_note(self, models):
        """Test a note from the stock cloze model."""
        row = RawNoteRow(note_id=6, field_blob="{{c1::Rome}} is old\x1fItaly", model_id=3)
        record = normalize_note(row, 0, variant=ContainerVariant.SUPPORTED_2_1, models=models)
        assert record.card_kind == CardKind.CLOZE
        assert record.cloze_text == "{{c1::Rome}} is old"
        assert record.extra == "Italy"

    def test_degraded_row_without_model(self):
        """Test raw fallback rows with no model metadata."""
        row = RawNoteRow(note_id=8, field_blob="Q\x1fA\x1fN", degraded=True)
        record = normalize_note(row, 4, variant=ContainerVariant.SUPPORTED_2_0, models={})
        assert record.card_kind == CardKind.BASIC
        assert record.extra == "N"
        assert "raw row fallback" in record.provenance

    def test_bad_row_skipped(self, models):
        """Test that row 3 of 10 failing to decode leaves 9 records."""
        rows = [
            RawNoteRow(note_id=i, field_blob=f"Q{i}\x1fA{i}", model_id=1) for i in range(10)
        ]
        rows[2] = RawNoteRow(note_id=2, field_blob=b"\xff\xfe\xfd", model_id=1)

        records = normalize_rows(rows, variant=ContainerVariant.SUPPORTED_2_1, models=models)

        assert len(records) == 9
        assert "imported_2_2" not in {r.id for r in records}
        assert records[2].id == "imported_3_3"

    def test_empty_note_skipped(self, models):
        """Test that notes with no recoverable content are dropped."""
        rows = [
            RawNoteRow(note_id=1, field_blob="Q\x1fA", model_id=1),
            RawNoteRow(note_id=2, field_blob="<div></div>\x1f", model_id=1),
        ]
        records = normalize_rows(rows, variant=ContainerVariant.SUPPORTED_2_1, models=models)
        assert [r.id for r in records] == ["imported_1_0"]
