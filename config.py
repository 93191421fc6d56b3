import os
from dotenv import load_dotenv

# Load .env variables
load_dotenv()


def _env_list(name: str, default: str) -> list:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


# --------------------------
# Database Configuration
# --------------------------
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///simlabel.db")

# --------------------------
# Embedding Configuration
# --------------------------
EMBEDDING_DIM = int(os.getenv("EMBEDDING_DIM", 1280))  # EfficientNet-B1 pooled features
EMBEDDING_IMAGE_SIZE = int(os.getenv("EMBEDDING_IMAGE_SIZE", 240))
WARM_EMBEDDING_MODEL = os.getenv("WARM_EMBEDDING_MODEL", "1") not in ("0", "false", "False", "")

# Suffix match is case-sensitive: ".JPG" is not ".jpg"
IMAGE_EXTENSIONS = tuple(_env_list("IMAGE_EXTENSIONS", ".jpg,.jpeg,.png"))

# --------------------------
# Selection / Training Configuration
# --------------------------
SCAN_TIME_BUDGET_S = float(os.getenv("SCAN_TIME_BUDGET_S", 1.0))
TRAIN_EPOCHS = int(os.getenv("TRAIN_EPOCHS", 5))
TRAIN_LR = float(os.getenv("TRAIN_LR", 1e-3))
CLASSIFIER_HIDDEN_DIMS = tuple(int(x) for x in _env_list("CLASSIFIER_HIDDEN_DIMS", "256,64"))
TRAIN_SEED = int(os.environ["TRAIN_SEED"]) if os.getenv("TRAIN_SEED") else None

# --------------------------
# Logging
# --------------------------
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
