from pathlib import Path
from PIL import Image


def load_rgb_image(path) -> Image.Image:
    """Open and fully decode an image file as RGB. Raises OSError on unreadable data."""
    with Image.open(path) as img:
        img.load()
        return img.convert("RGB")


def file_summary(path) -> dict:
    path = Path(path)
    return {"file": str(path), "filename": path.name, "size": path.stat().st_size}
