"""
Per-model and batch annotate, remove and preview.

Models are grouped by source file; each file is handled by one worker so
blocks of models sharing a module are patched sequentially. A file holding a
single model gets an untagged block at the top; a file holding several gets
one tagged block above each class.
"""
import logging
import os
import time
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

from sqlalchemy.engine import Engine

from config import settings
from core.codec import AnnotationCodec, assemble
from core.db_connector import create_engine_from_url
from core.errors import ErrorReporter, InsertionError, ModelNotFoundError, SourceFileNotFoundError
from core.file_patcher import insert_above_class, insert_at_class_definition, remove_from_file
from core.model_discovery import discover_models, load_declarative_base
from core.pipeline import AnnotationPipeline
from core.view_metadata import ViewCache
from models.annotation import BatchReport, FailedModel
from models.descriptor import ModelDescriptor

logger = logging.getLogger(__name__)

ANNOTATED = "annotated"
SKIPPED = "skipped"


class AnnotationManager:
    def __init__(
        self,
        engine: Engine,
        models: list[ModelDescriptor],
        pipeline: Optional[AnnotationPipeline] = None,
        view_cache: Optional[ViewCache] = None,
        models_path: Optional[str] = None,
        workers: Optional[int] = None,
    ):
        self.engine = engine
        self.models = models
        self.view_cache = view_cache if view_cache is not None else ViewCache()
        self.pipeline = pipeline or AnnotationPipeline(view_cache=self.view_cache)
        self.models_path = settings.MODELS_PATH if models_path is None else models_path
        self.workers = max(1, workers or settings.WORKERS)

        per_file: dict[str, int] = defaultdict(int)
        for m in models:
            if m.source_file:
                per_file[m.source_file] += 1
        self._shared_files = {path for path, count in per_file.items() if count > 1}

    @classmethod
    def from_settings(cls) -> "AnnotationManager":
        base = load_declarative_base()
        return cls(create_engine_from_url(), discover_models(base))

    # ── Lookup ────────────────────────────────────────────────────────────────

    def find(self, name: str) -> ModelDescriptor:
        for model in self.models:
            if model.name == name or f"{model.module}.{model.name}" == name:
                return model
        raise ModelNotFoundError(f"No mapped model named {name!r}")

    def select(self, names: Optional[list[str]] = None) -> list[ModelDescriptor]:
        if not names:
            return list(self.models)
        return [self.find(n) for n in names]

    def codec_for(self, model: ModelDescriptor) -> AnnotationCodec:
        if model.source_file in self._shared_files:
            return AnnotationCodec(tag=model.name)
        return AnnotationCodec()

    # ── Single model ──────────────────────────────────────────────────────────

    def generate(self, model: ModelDescriptor) -> str:
        """Block body for `model`; empty when nothing was produced or a concrete model has no table."""
        result = self.pipeline.process(model, self.engine)
        if result.schema_text is None and not model.abstract:
            logger.info("Skipping %s: table %s is missing or could not be reflected", model.name, model.table_name)
            return ""
        return assemble(result)

    def preview(self, model: ModelDescriptor) -> str:
        body = self.generate(model)
        return self.codec_for(model).render(body) if body else ""

    def annotate_model(self, model: ModelDescriptor) -> str:
        path = self._writable_path(model)
        if path is None:
            return SKIPPED
        body = self.generate(model)
        if not body:
            logger.info("Nothing to annotate for %s", model.name)
            return SKIPPED

        codec = self.codec_for(model)
        block = codec.render(body)
        if codec.tag:
            # a file that used to hold one model may still carry its untagged block
            remove_from_file(path, AnnotationCodec())
            written = insert_above_class(path, model.name, block, codec)
        else:
            written = insert_at_class_definition(path, block, codec)
        if not written:
            raise InsertionError(f"Could not write annotation for {model.name} to {path}")
        logger.info("Annotated %s in %s", model.name, path)
        return ANNOTATED

    def remove_model(self, model: ModelDescriptor) -> str:
        path = self._writable_path(model)
        if path is None:
            return SKIPPED
        removed = remove_from_file(path, self.codec_for(model))
        if removed:
            logger.info("Removed annotation for %s from %s", model.name, path)
        return ANNOTATED if removed else SKIPPED

    def _writable_path(self, model: ModelDescriptor) -> Optional[str]:
        if model.source_file is None:
            logger.info("Skipping %s: no source file", model.name)
            return None
        if not os.path.isfile(model.source_file):
            raise SourceFileNotFoundError(f"Source file for {model.name} not found: {model.source_file}")
        if self.models_path and not _within(model.source_file, self.models_path):
            logger.info("Skipping %s: %s is outside %s", model.name, model.source_file, self.models_path)
            return None
        return model.source_file

    # ── Batch ─────────────────────────────────────────────────────────────────

    def annotate_all(self, names: Optional[list[str]] = None) -> BatchReport:
        return self._batch(self.select(names), self.annotate_model, "annotate")

    def remove_all(self, names: Optional[list[str]] = None) -> BatchReport:
        return self._batch(self.select(names), self.remove_model, "remove")

    def _batch(self, models: list[ModelDescriptor], action: Callable[[ModelDescriptor], str],
               operation: str) -> BatchReport:
        start = time.time()
        groups: dict[str, list[ModelDescriptor]] = defaultdict(list)
        for model in models:
            groups[model.source_file or f"<{model.name}>"].append(model)

        report = BatchReport()
        if self.workers == 1 or len(groups) < 2:
            for group in groups.values():
                report.merge(self._run_group(group, action, operation))
        else:
            with ThreadPoolExecutor(max_workers=self.workers) as pool:
                for partial in pool.map(lambda g: self._run_group(g, action, operation), groups.values()):
                    report.merge(partial)

        logger.info(
            "%s finished in %.2fs: %d annotated, %d skipped, %d failed",
            operation, time.time() - start, len(report.annotated), len(report.skipped), len(report.failed),
        )
        return report

    def _run_group(self, group: list[ModelDescriptor], action: Callable[[ModelDescriptor], str],
                   operation: str) -> BatchReport:
        report = BatchReport()
        for model in group:
            try:
                status = action(model)
            except Exception as e:
                logger.warning("Failed to %s %s: %s", operation, model.name, e)
                ErrorReporter.report(e, {"model": model.name, "operation": operation})
                if settings.RAISE_ON_ERROR:
                    raise
                report.failed.append(FailedModel(model=model.name, error=f"{type(e).__name__}: {e}"))
                continue
            if status == ANNOTATED:
                report.annotated.append(model.name)
            else:
                report.skipped.append(model.name)
        return report


def _within(path: str, root: str) -> bool:
    path, root = os.path.realpath(path), os.path.realpath(root)
    return os.path.commonpath([path, root]) == root
