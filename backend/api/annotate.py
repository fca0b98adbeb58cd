"""POST /api/annotate, POST /api/remove, GET /api/preview/{model_name}."""
import logging
import threading
import time
from typing import Optional
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from core.annotation_manager import AnnotationManager
from core.errors import ConfigurationError, ModelNotFoundError, SchemaLensError
from models.annotation import BatchResponse

router = APIRouter()
logger = logging.getLogger(__name__)

# Built on first use from settings; reset_manager() drops it (e.g. after model changes).
_manager: Optional[AnnotationManager] = None
_manager_lock = threading.Lock()


class ModelsRequest(BaseModel):
    models: Optional[list[str]] = None      # None = every discovered model


class PreviewResponse(BaseModel):
    model: str
    annotation: str


def get_manager() -> AnnotationManager:
    global _manager
    with _manager_lock:
        if _manager is None:
            try:
                _manager = AnnotationManager.from_settings()
            except ConfigurationError as e:
                raise HTTPException(500, detail=str(e))
            except SchemaLensError as e:
                raise HTTPException(503, detail=str(e))
        return _manager


def reset_manager() -> None:
    global _manager
    with _manager_lock:
        if _manager is not None:
            _manager.engine.dispose()
        _manager = None


@router.post("/annotate", response_model=BatchResponse)
def annotate(req: Optional[ModelsRequest] = None):
    return _run_batch("annotate", req or ModelsRequest())


@router.post("/remove", response_model=BatchResponse)
def remove(req: Optional[ModelsRequest] = None):
    return _run_batch("remove", req or ModelsRequest())


@router.get("/preview/{model_name}", response_model=PreviewResponse)
def preview(model_name: str):
    manager = get_manager()
    try:
        model = manager.find(model_name)
    except ModelNotFoundError as e:
        raise HTTPException(404, detail=str(e))
    try:
        annotation = manager.preview(model)
    except SchemaLensError as e:
        raise HTTPException(500, detail=str(e))
    return PreviewResponse(model=model.name, annotation=annotation)


def _run_batch(operation: str, req: ModelsRequest) -> BatchResponse:
    manager = get_manager()
    t0 = time.time()
    try:
        if operation == "annotate":
            report = manager.annotate_all(req.models)
        else:
            report = manager.remove_all(req.models)
    except ModelNotFoundError as e:
        raise HTTPException(404, detail=str(e))
    logger.info("%s request done: %s", operation, report.counts)
    return BatchResponse(
        operation=operation,
        counts=report.counts,
        duration_seconds=round(time.time() - t0, 3),
        report=report,
    )
