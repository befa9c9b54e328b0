"""Tests for the owner-scoped history store."""
from datetime import datetime, timezone

import pytest

from app.classifier.models import DetectionResult, SourceMeta, Verdict
from app.errors import InvalidInput, NotFoundOrForbidden
from app.history_store import (
    HistoryDraft,
    HistoryRecord,
    HistoryStore,
    ImageKind,
    ImageRef,
    MAX_IMAGE_REF_LENGTH,
    coerce_limit,
    coerce_skip,
)
from auth.models import Identity

ALICE = Identity(id="user-alice", email="alice@example.com", display_name="Alice")
BOB = Identity(id="user-bob", email="bob@example.com", display_name="Bob")


def _draft(verdict=Verdict.AI, ai=85.42, real=14.58, url="https://img.test/a.jpg", **meta):
    return HistoryDraft(
        image_ref=ImageRef(kind=ImageKind.URL, payload_or_url=url),
        result=DetectionResult(
            ai_probability=ai,
            real_probability=real,
            verdict=verdict,
            processing_time_ms=1288.52,
            source_meta=SourceMeta(
                filename=meta.get("filename", "a.jpg"),
                format=meta.get("format", "JPEG"),
                width=meta.get("width", 800),
                height=meta.get("height", 1066),
            ),
        ),
    )


@pytest.fixture
def store():
    return HistoryStore()


class TestAppend:
    """Tests for HistoryStore.append."""

    def test_append_assigns_owner_from_identity(self, store):
        record = store.append(ALICE, _draft())

        assert record.owner_id == ALICE.id
        assert record.owner_email == ALICE.email
        assert record.owner_display_name == "Alice"
        assert record.id
        assert record.created_at.tzinfo is not None

    def test_append_then_list_includes_record(self, store):
        record = store.append(ALICE, _draft())
        page = store.list(ALICE)

        assert [r.id for r in page.records] == [record.id]
        assert page.records[0] == record

    def test_record_ids_unique(self, store):
        ids = {store.append(ALICE, _draft()).id for _ in range(5)}
        assert len(ids) == 5

    def test_out_of_range_probability_rejected(self, store):
        with pytest.raises(InvalidInput):
            store.append(ALICE, _draft(ai=101))
        with pytest.raises(InvalidInput):
            store.append(ALICE, _draft(real=-0.5))

    def test_probabilities_rounded_to_two_places(self, store):
        record = store.append(ALICE, _draft(ai=85.4249, real=14.5751))
        assert record.result.ai_probability == 85.42
        assert record.result.real_probability == 14.58

    def test_negative_dimension_rejected(self, store):
        with pytest.raises(InvalidInput):
            store.append(ALICE, _draft(width=-1))

    def test_url_record_requires_url(self, store):
        with pytest.raises(InvalidInput):
            store.append(ALICE, _draft(url=None))

    def test_oversized_image_ref_rejected(self, store):
        huge = "data:image/png;base64," + "A" * MAX_IMAGE_REF_LENGTH
        draft = HistoryDraft(
            image_ref=ImageRef(kind=ImageKind.UPLOAD, payload_or_url=huge),
            result=_draft().result,
        )
        with pytest.raises(InvalidInput):
            store.append(ALICE, draft)

    def test_upload_without_retained_image(self, store):
        draft = HistoryDraft(
            image_ref=ImageRef(kind=ImageKind.UPLOAD, payload_or_url=None),
            result=_draft().result,
        )
        record = store.append(ALICE, draft)
        assert record.image_ref.payload_or_url is None

    def test_rejected_draft_not_persisted(self, store):
        with pytest.raises(InvalidInput):
            store.append(ALICE, _draft(ai=150))
        assert store.list(ALICE).total == 0


class TestList:
    """Tests for HistoryStore.list."""

    def test_newest_first(self, store):
        first = store.append(ALICE, _draft())
        second = store.append(ALICE, _draft())
        third = store.append(ALICE, _draft())

        ids = [r.id for r in store.list(ALICE).records]
        assert ids == [third.id, second.id, first.id]

    def test_created_at_non_increasing(self, store):
        for _ in range(6):
            store.append(ALICE, _draft())

        stamps = [r.created_at for r in store.list(ALICE).records]
        assert stamps == sorted(stamps, reverse=True)

    def test_only_own_records(self, store):
        store.append(ALICE, _draft())
        store.append(BOB, _draft())
        store.append(BOB, _draft())

        alice_page = store.list(ALICE)
        bob_page = store.list(BOB)

        assert alice_page.total == 1
        assert bob_page.total == 2
        assert all(r.owner_id == ALICE.id for r in alice_page.records)
        assert all(r.owner_id == BOB.id for r in bob_page.records)

    def test_requires_both_owner_fields(self, store):
        store.append(ALICE, _draft())
        same_id_other_email = Identity(id=ALICE.id, email="mallory@example.com", display_name="M")
        same_email_other_id = Identity(id="user-mallory", email=ALICE.email, display_name="M")

        assert store.list(same_id_other_email).total == 0
        assert store.list(same_email_other_id).total == 0

    def test_pagination_has_more(self, store):
        for _ in range(5):
            store.append(ALICE, _draft())

        page = store.list(ALICE, limit=2, skip=0)
        assert len(page.records) == 2
        assert page.total == 5
        assert page.has_more is True

        last = store.list(ALICE, limit=2, skip=4)
        assert len(last.records) == 1
        assert last.has_more is False

    def test_pages_partition_history(self, store):
        created = [store.append(ALICE, _draft()).id for _ in range(7)]

        seen = []
        skip = 0
        while True:
            page = store.list(ALICE, limit=3, skip=skip)
            seen.extend(r.id for r in page.records)
            if not page.has_more:
                break
            skip += 3

        assert seen == list(reversed(created))

    def test_non_numeric_limit_defaults_to_50(self, store):
        page = store.list(ALICE, limit="lots", skip="nope")
        assert page.limit == 50
        assert page.skip == 0

    def test_zero_limit_returns_no_records(self, store):
        store.append(ALICE, _draft())
        page = store.list(ALICE, limit=0)

        assert page.records == []
        assert page.total == 1
        assert page.has_more is True

    def test_skip_past_end(self, store):
        store.append(ALICE, _draft())
        page = store.list(ALICE, limit=10, skip=10)

        assert page.records == []
        assert page.has_more is False

    def test_page_to_dict(self, store):
        store.append(ALICE, _draft())
        data = store.list(ALICE, limit=10).to_dict()

        assert data["success"] is True
        assert data["pagination"] == {"total": 1, "limit": 10, "skip": 0, "hasMore": False}
        assert data["data"][0]["finalResult"] == "AI"


class TestGetAndRemove:
    """Tests for HistoryStore.get and HistoryStore.remove."""

    def test_get_own_record(self, store):
        record = store.append(ALICE, _draft())
        assert store.get(ALICE, record.id) == record

    def test_get_foreign_record_is_not_found(self, store):
        record = store.append(ALICE, _draft())
        with pytest.raises(NotFoundOrForbidden):
            store.get(BOB, record.id)

    def test_remove_own_record(self, store):
        record = store.append(ALICE, _draft())

        assert store.remove(ALICE, record.id) is True
        assert store.list(ALICE).total == 0

    def test_remove_twice(self, store):
        record = store.append(ALICE, _draft())

        assert store.remove(ALICE, record.id) is True
        with pytest.raises(NotFoundOrForbidden):
            store.remove(ALICE, record.id)

    def test_remove_foreign_record_refused_and_kept(self, store):
        record = store.append(ALICE, _draft())

        with pytest.raises(NotFoundOrForbidden):
            store.remove(BOB, record.id)

        assert store.get(ALICE, record.id).id == record.id

    def test_remove_with_matching_id_but_other_email_refused(self, store):
        record = store.append(ALICE, _draft())
        impostor = Identity(id=ALICE.id, email="other@example.com", display_name="Alice")

        with pytest.raises(NotFoundOrForbidden):
            store.remove(impostor, record.id)

        assert store.list(ALICE).total == 1

    def test_remove_unknown_id(self, store):
        with pytest.raises(NotFoundOrForbidden):
            store.remove(ALICE, "does-not-exist")

    def test_remove_empty_id(self, store):
        with pytest.raises(NotFoundOrForbidden):
            store.remove(ALICE, "")


class TestStats:
    """Tests for HistoryStore.stats."""

    def test_counts_by_verdict(self, store):
        store.append(ALICE, _draft(verdict=Verdict.AI))
        store.append(ALICE, _draft(verdict=Verdict.AI))
        store.append(ALICE, _draft(verdict=Verdict.REAL))
        store.append(BOB, _draft(verdict=Verdict.REAL))

        assert store.stats(ALICE) == {"total": 3, "ai": 2, "real": 1}
        assert store.stats(BOB) == {"total": 1, "ai": 0, "real": 1}

    def test_empty(self, store):
        assert store.stats(ALICE) == {"total": 0, "ai": 0, "real": 0}


class TestRecordSerialization:
    """Tests for HistoryRecord wire and storage forms."""

    def test_to_dict_wire_shape(self, store):
        record = store.append(ALICE, _draft())
        data = record.to_dict()

        assert data["_id"] == data["id"] == record.id
        assert data["userId"] == ALICE.id
        assert data["userEmail"] == ALICE.email
        assert data["userName"] == "Alice"
        assert data["imageType"] == "url"
        assert data["imageUrl"] == "https://img.test/a.jpg"
        assert data["aiProbability"] == 85.42
        assert data["realProbability"] == 14.58
        assert data["finalResult"] == "AI"
        assert data["processingTime"] == 1288.52
        assert data["imageMetadata"]["width"] == 800
        assert data["createdAt"].endswith("+00:00")

    def test_document_round_trip(self):
        record = HistoryRecord(
            id="rec-1",
            owner_id=ALICE.id,
            owner_email=ALICE.email,
            owner_display_name=ALICE.display_name,
            image_ref=ImageRef(kind=ImageKind.UPLOAD, payload_or_url=None),
            result=_draft(verdict=Verdict.REAL).result,
            created_at=datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc),
        )
        assert HistoryRecord.from_document(record.to_document()) == record


class TestCoercion:
    """Tests for limit/skip coercion."""

    @pytest.mark.parametrize(
        "value,expected",
        [(None, 50), ("abc", 50), (-5, 50), (True, 50), ("20", 20), (0, 0), (7, 7)],
    )
    def test_coerce_limit(self, value, expected):
        assert coerce_limit(value) == expected

    @pytest.mark.parametrize("value,expected", [(None, 0), ("x", 0), (-1, 0), ("15", 15)])
    def test_coerce_skip(self, value, expected):
        assert coerce_skip(value) == expected
