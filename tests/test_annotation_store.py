import pytest

from models import Annotation
from services import AnnotationStore, ValidationError, canonical_pair
from tests.helpers import count_rows, insert_images


@pytest.fixture
def store(session_factory):
    return AnnotationStore(session_factory)


@pytest.fixture
def ids(session_factory):
    return insert_images(session_factory, 3)


def test_canonical_pair():
    assert canonical_pair(5, 2) == (2, 5)
    assert canonical_pair(2, 5) == (2, 5)


class TestSubmit:
    def test_stores_canonical_order(self, store, ids):
        annotation_id = store.submit(ids[2], ids[0], True)
        record = store.find(ids[0], ids[2])
        assert record.id == annotation_id
        assert record.pair == (ids[0], ids[2])
        assert record.is_similar is True

    def test_resubmission_overwrites_label(self, store, session_factory, ids):
        first = store.submit(ids[0], ids[1], True)
        second = store.submit(ids[1], ids[0], False)
        assert first == second
        assert store.find(ids[0], ids[1]).is_similar is False
        assert count_rows(session_factory, Annotation) == 1

    def test_labeled_pairs(self, store, ids):
        store.submit(ids[1], ids[0], True)
        store.submit(ids[2], ids[1], False)
        assert store.labeled_pairs() == {(ids[0], ids[1]), (ids[1], ids[2])}
        assert store.count() == 2

    def test_all_annotations_in_insertion_order(self, store, ids):
        store.submit(ids[1], ids[2], False)
        store.submit(ids[0], ids[1], True)
        assert [record.pair for record in store.all_annotations()] == [(ids[1], ids[2]), (ids[0], ids[1])]

    def test_listeners_run_after_each_write(self, store, ids):
        calls = []
        store.add_listener(lambda: calls.append(store.count()))
        store.submit(ids[0], ids[1], True)
        store.submit(ids[0], ids[1], False)
        assert calls == [1, 1]

    def test_find_unknown_pair(self, store, ids):
        assert store.find(ids[0], ids[1]) is None


class TestValidation:
    @pytest.mark.parametrize(
        "a, b, label",
        [
            ("1", 2, True),
            (1.0, 2, True),
            (True, 2, True),
            (1, None, True),
            (1, 2, "yes"),
            (1, 2, 1),
        ],
    )
    def test_rejects_bad_types(self, store, ids, a, b, label):
        with pytest.raises(ValidationError):
            store.submit(a, b, label)

    def test_rejects_same_image(self, store, ids):
        with pytest.raises(ValidationError):
            store.submit(ids[0], ids[0], True)

    def test_rejects_unknown_image(self, store, ids):
        with pytest.raises(ValidationError):
            store.submit(ids[0], max(ids) + 10, True)

    def test_rejected_submission_changes_nothing(self, store, session_factory, ids):
        calls = []
        store.add_listener(lambda: calls.append(1))
        with pytest.raises(ValidationError):
            store.submit(ids[0], ids[0], False)
        assert count_rows(session_factory, Annotation) == 0
        assert calls == []
