import logging

from .embedding_image import ensure_model_loaded

log = logging.getLogger(__name__)

loaded = False

def load_model_bg():
    """Warm the embedding extractor so the first scan does not pay for the weight download."""
    global loaded
    try:
        ensure_model_loaded()
        loaded = True
        log.info("[MODEL INIT] EfficientNet-B1 extractor loaded successfully")
    except Exception as e:
        log.error("[MODEL INIT ERROR] %s", e)
