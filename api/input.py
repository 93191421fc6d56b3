#simlabel/api/input.py
import unicodedata
from pydantic import BaseModel, StrictBool, StrictInt


def normalize_text(s) -> str:
    if not s:
        return ""
    s = s.strip()
    s = unicodedata.normalize("NFC", s)
    # remove control characters
    return "".join(ch for ch in s if ch.isprintable())


def normalize_dir(raw: str) -> str:
    """Directory path typed into the scan form: trimmed, NFC, no control characters."""
    return normalize_text(raw)


class AnnotationIn(BaseModel):
    a_image_id: StrictInt
    b_image_id: StrictInt
    is_similar: StrictBool


class AnnotationOut(BaseModel):
    annotation_id: int
    retrain_scheduled: bool
