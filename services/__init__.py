# Services package initialization
from .errors import (
    SimilarityError, MediaReadError, DirectoryAccessError, ValidationError,
    TrainingError, EmbeddingDecodeError, ImageNotFoundError,
)
from .vector_codec import encode_embedding, decode_embedding
from .db_utils import make_engine, make_session_factory, get_session, init_db, check_connection
from .embedding_image import embed_image_file
from .embedding_store import EmbeddingStore, StoredImage, canonical_path
from .classifier import PairClassifier, ClassifierSlot
from .annotation_store import AnnotationStore, AnnotationRecord, canonical_pair
from .trainer import Trainer, fit_classifier, new_classifier
from .directory_index import DirectoryIndex
from .pair_selector import PairCandidate, select_next_pair
from .similarity_service import SimilarityService, build_service

__all__ = [
    'SimilarityError', 'MediaReadError', 'DirectoryAccessError', 'ValidationError',
    'TrainingError', 'EmbeddingDecodeError', 'ImageNotFoundError',
    'encode_embedding', 'decode_embedding',
    'make_engine', 'make_session_factory', 'get_session', 'init_db', 'check_connection',
    'embed_image_file', 'EmbeddingStore', 'StoredImage', 'canonical_path',
    'PairClassifier', 'ClassifierSlot', 'AnnotationStore', 'AnnotationRecord', 'canonical_pair',
    'Trainer', 'fit_classifier', 'new_classifier', 'DirectoryIndex',
    'PairCandidate', 'select_next_pair', 'SimilarityService', 'build_service',
]
