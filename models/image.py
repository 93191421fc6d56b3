# File: simlabel/models/image.py
from sqlalchemy import Column, Integer, Text, LargeBinary, TIMESTAMP
from .base import Base, utcnow

class Image(Base):
    __tablename__ = "image"
    id = Column(Integer, primary_key=True, autoincrement=True)
    file = Column(Text, nullable=False, unique=True)  # canonical absolute path
    embedding = Column(LargeBinary, nullable=False)  # little-endian float32, see services/vector_codec.py
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)

    def __repr__(self):
        return f"<Image id={self.id} file={self.file!r}>"
