# File: simlabel/models/annotation.py
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Integer,
    TIMESTAMP,
    UniqueConstraint,
)
from .base import Base, utcnow

class Annotation(Base):
    __tablename__ = "annotation"
    __table_args__ = (
        UniqueConstraint("a_image_id", "b_image_id", name="uq_annotation_pair"),
        CheckConstraint("a_image_id < b_image_id", name="ck_annotation_canonical_order"),
    )
    id = Column(Integer, primary_key=True, autoincrement=True)
    a_image_id = Column(Integer, ForeignKey("image.id"), nullable=False)
    b_image_id = Column(Integer, ForeignKey("image.id"), nullable=False)
    is_similar = Column(Boolean, nullable=False)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)

    @property
    def pair(self):
        return (self.a_image_id, self.b_image_id)

    def __repr__(self):
        return f"<Annotation id={self.id} pair={self.pair} is_similar={self.is_similar}>"
