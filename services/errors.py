# File: simlabel/services/errors.py
# Error taxonomy surfaced to callers of the similarity core.


class SimilarityError(Exception):
    """Base class for every error raised by the similarity core."""


class MediaReadError(SimilarityError):
    """An image file could not be read or decoded. Aborts the enclosing scan."""


class DirectoryAccessError(SimilarityError):
    """A scan directory is missing or cannot be listed."""


class ValidationError(SimilarityError):
    """A malformed annotation submission, rejected before any write."""


class TrainingError(SimilarityError):
    """Retraining diverged or got malformed inputs. The active classifier is kept."""


class EmbeddingDecodeError(SimilarityError):
    """A stored embedding blob does not match the expected dimension."""


class ImageNotFoundError(SimilarityError, LookupError):
    """No image row exists for the requested id."""
