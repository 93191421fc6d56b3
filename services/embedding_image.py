# File: simlabel/services/embedding_image.py
# Opaque image -> vector extractor. EfficientNet-B1 pooled features, CPU only.

import threading

import numpy as np
import torch
import torch.nn as nn
from PIL import Image
from torchvision import transforms
from torchvision.models import efficientnet_b1, EfficientNet_B1_Weights

from config import EMBEDDING_DIM, EMBEDDING_IMAGE_SIZE
from utils.image_utils import load_rgb_image
from .errors import MediaReadError

# CPU-only
device = "cpu"

# Lazy-loaded model
_model = None
_model_lock = threading.Lock()

# ImageNet normalization
IMAGENET_MEAN = [0.485, 0.456, 0.406]
IMAGENET_STD = [0.229, 0.224, 0.225]

_preprocess = transforms.Compose([
    transforms.Resize((EMBEDDING_IMAGE_SIZE, EMBEDDING_IMAGE_SIZE)),
    transforms.ToTensor(),
    transforms.Normalize(mean=IMAGENET_MEAN, std=IMAGENET_STD),
])

def ensure_model_loaded():
    """Load EfficientNet-B1 only on first use (CPU). Safe to call from several threads."""
    global _model
    with _model_lock:
        if _model is None:
            weights = EfficientNet_B1_Weights.IMAGENET1K_V1
            model = efficientnet_b1(weights=weights)
            model.classifier = nn.Identity()
            model.eval()  # CPU eval
            _model = model
    return _model

def preprocess_image(img: Image.Image) -> torch.Tensor:
    """Convert a decoded RGB image to a normalized batch of one."""
    return _preprocess(img).unsqueeze(0)

def embed_image_file(path) -> np.ndarray:
    """Generate an L2-normalized image embedding for a file on disk.

    Raises MediaReadError when the file cannot be opened or decoded.
    """
    try:
        img = load_rgb_image(path)
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        raise MediaReadError(f"Cannot read image {path}: {e}") from e

    model = ensure_model_loaded()
    x = preprocess_image(img)
    with torch.no_grad():
        feats = model(x)
    arr = feats.numpy()[0].astype(np.float32)
    if arr.shape[0] != EMBEDDING_DIM:
        raise MediaReadError(f"Extractor produced {arr.shape[0]} values for {path}, expected {EMBEDDING_DIM}")
    arr /= np.linalg.norm(arr) + 1e-12
    return arr
