# File: simlabel/services/annotation_store.py
# Canonicalizes and persists human pair labels, then notifies listeners (the trainer).

import logging
from dataclasses import dataclass
from typing import Callable, FrozenSet, List, Optional, Tuple

from models import Annotation, Image
from models.base import utcnow
from .db_utils import get_session
from .errors import ValidationError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnnotationRecord:
    id: int
    a_image_id: int
    b_image_id: int
    is_similar: bool

    @property
    def pair(self) -> Tuple[int, int]:
        return (self.a_image_id, self.b_image_id)


def canonical_pair(a_image_id: int, b_image_id: int) -> Tuple[int, int]:
    """Smaller id first, the only order pairs are ever stored or looked up in."""
    if a_image_id > b_image_id:
        return b_image_id, a_image_id
    return a_image_id, b_image_id


def _check_image_id(name: str, value) -> int:
    # bool is an int subclass, but True/False are not image ids
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer image id, got {value!r}")
    return value


def _to_record(row: Annotation) -> AnnotationRecord:
    return AnnotationRecord(
        id=row.id,
        a_image_id=row.a_image_id,
        b_image_id=row.b_image_id,
        is_similar=bool(row.is_similar),
    )


class AnnotationStore:
    """Owner of the ``annotation`` table."""

    def __init__(self, session_factory):
        self._session_factory = session_factory
        self._listeners: List[Callable[[], object]] = []

    def add_listener(self, listener: Callable[[], object]):
        """Register a callable run after every successful write."""
        self._listeners.append(listener)

    def submit(self, a_image_id, b_image_id, is_similar) -> int:
        """Upsert the label for an unordered image pair and return the annotation id.

        Raises ValidationError before touching the table when ids are not integers,
        refer to the same image or to unknown images, or when the label is not a bool.
        """
        a_image_id = _check_image_id("a_image_id", a_image_id)
        b_image_id = _check_image_id("b_image_id", b_image_id)
        if not isinstance(is_similar, bool):
            raise ValidationError(f"is_similar must be a boolean, got {is_similar!r}")
        if a_image_id == b_image_id:
            raise ValidationError(f"cannot annotate image {a_image_id} against itself")

        a_image_id, b_image_id = canonical_pair(a_image_id, b_image_id)

        with get_session(self._session_factory) as session:
            known = {
                row[0]
                for row in session.query(Image.id).filter(Image.id.in_((a_image_id, b_image_id))).all()
            }
            unknown = [i for i in (a_image_id, b_image_id) if i not in known]
            if unknown:
                raise ValidationError(f"unknown image id(s): {unknown}")

            row = (
                session.query(Annotation)
                .filter_by(a_image_id=a_image_id, b_image_id=b_image_id)
                .one_or_none()
            )
            if row is None:
                row = Annotation(a_image_id=a_image_id, b_image_id=b_image_id, is_similar=is_similar)
                session.add(row)
                action = "created"
            else:
                row.is_similar = is_similar
                row.updated_at = utcnow()
                action = "updated"
            session.commit()
            annotation_id = row.id

        log.info("[ANNOTATIONS] %s #%d pair=(%d, %d) is_similar=%s",
                 action, annotation_id, a_image_id, b_image_id, is_similar)
        self._notify()
        return annotation_id

    def find(self, a_image_id: int, b_image_id: int) -> Optional[AnnotationRecord]:
        a_image_id, b_image_id = canonical_pair(a_image_id, b_image_id)
        with get_session(self._session_factory) as session:
            row = (
                session.query(Annotation)
                .filter_by(a_image_id=a_image_id, b_image_id=b_image_id)
                .one_or_none()
            )
            return _to_record(row) if row is not None else None

    def all_annotations(self) -> List[AnnotationRecord]:
        with get_session(self._session_factory) as session:
            rows = session.query(Annotation).order_by(Annotation.id).all()
            return [_to_record(row) for row in rows]

    def labeled_pairs(self) -> FrozenSet[Tuple[int, int]]:
        with get_session(self._session_factory) as session:
            rows = session.query(Annotation.a_image_id, Annotation.b_image_id).all()
            return frozenset((a, b) for a, b in rows)

    def count(self) -> int:
        with get_session(self._session_factory) as session:
            return session.query(Annotation).count()

    def _notify(self):
        for listener in self._listeners:
            listener()
