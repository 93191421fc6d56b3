# File: simlabel/api/similar.py
# Thin JSON boundary over the similarity core: scan, next pair, annotate, image bytes.

import time
import logging
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import FileResponse

from api.input import AnnotationIn, AnnotationOut, normalize_dir
from services import (
    DirectoryAccessError,
    ImageNotFoundError,
    MediaReadError,
    SimilarityService,
    ValidationError,
)
from utils.image_utils import file_summary

log = logging.getLogger(__name__)
router = APIRouter()


def get_service(request: Request) -> SimilarityService:
    service = getattr(request.app.state, "similarity", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Similarity service not initialized")
    return service


def _scan_dir(scan_dir: str) -> str:
    scan_dir = normalize_dir(scan_dir)
    if not scan_dir:
        raise HTTPException(status_code=400, detail="missing scan_dir")
    return scan_dir


def _raise_http(e: Exception):
    if isinstance(e, DirectoryAccessError):
        raise HTTPException(status_code=404, detail=str(e))
    if isinstance(e, ImageNotFoundError):
        raise HTTPException(status_code=404, detail=str(e))
    if isinstance(e, MediaReadError):
        raise HTTPException(status_code=422, detail=str(e))
    if isinstance(e, ValidationError):
        raise HTTPException(status_code=400, detail=str(e))
    raise e


def _describe(image) -> dict:
    try:
        summary = file_summary(image.file)
    except OSError:
        # file moved or deleted since it was embedded
        summary = {"file": image.file, "filename": image.path.name, "size": None}
    return {"id": image.id, **summary}


@router.get("/scan")
async def scan_directory(scan_dir: str = Query(...), service: SimilarityService = Depends(get_service)):
    """
    List the eligible images of a directory, embedding any not seen before.
    """
    start = time.time()
    try:
        images = await service.scan_directory(_scan_dir(scan_dir))
    except (DirectoryAccessError, MediaReadError) as e:
        _raise_http(e)
    return {
        "images": [_describe(image) for image in images],
        "latency_s": round(time.time() - start, 3),
    }


@router.get("/next")
async def next_pair(scan_dir: str = Query(...), service: SimilarityService = Depends(get_service)):
    """
    Best unannotated pair of the directory according to the active classifier.
    """
    start = time.time()
    try:
        candidate = await service.next_pair(_scan_dir(scan_dir))
    except (DirectoryAccessError, MediaReadError) as e:
        _raise_http(e)

    pair = None
    if candidate is not None:
        images = service.embeddings.images_by_id(candidate.pair)
        pair = {
            "a": _describe(images[candidate.a_image_id]),
            "b": _describe(images[candidate.b_image_id]),
            "similarity": round(candidate.score, 6),
            "distance": round(1.0 - candidate.score, 6),
        }
    return {
        "pair": pair,
        "classifier_generation": service.slot.generation,
        "latency_s": round(time.time() - start, 3),
    }


@router.post("/annotations", response_model=AnnotationOut)
async def record_annotation(body: AnnotationIn, service: SimilarityService = Depends(get_service)):
    """
    Store a similar / not-similar label for a pair. Retraining runs in the background.
    """
    try:
        annotation_id = await service.record_annotation(body.a_image_id, body.b_image_id, body.is_similar)
    except ValidationError as e:
        _raise_http(e)
    return AnnotationOut(annotation_id=annotation_id, retrain_scheduled=service.trainer.pending > 0)


@router.get("/image/{image_id}")
async def image_file(image_id: int, service: SimilarityService = Depends(get_service)):
    try:
        path = service.resolve_image_file(image_id)
    except ImageNotFoundError as e:
        _raise_http(e)
    if not path.is_file():
        raise HTTPException(status_code=404, detail=f"File for image {image_id} is gone: {path}")
    return FileResponse(path)
