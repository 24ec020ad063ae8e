"""
Question Session Module

Owns the per-session state of the question builder: known images, the
per-image extraction cache, the active selection and the saved set.
UI code reads it and mutates it only through these methods.
"""

from dataclasses import dataclass, field
from concurrent.futures import Future, as_completed
from typing import Optional

from models import ImageFile, ConversionOutput, SelectedImage
from image_intake import accept_uploads
from llm_extraction import get_logger


@dataclass
class ExtractionOutcome:
    name: str
    output: ConversionOutput
    failed: bool = False
    error: str = ""
    usages: list = field(default_factory=list)


def run_extraction(extract_fn, image: ImageFile) -> ExtractionOutcome:
    """
    Background extraction for one image. Never raises: a failure is logged
    and the empty ConversionOutput is substituted.
    """
    usages = []
    get_logger().debug(f"Extraction requested for {image.name}")
    try:
        output = extract_fn(
            image.data, image.mime_type,
            on_usage=lambda model_id, usage: usages.append((model_id, usage))
        )
        return ExtractionOutcome(image.name, output, usages=usages)
    except Exception as e:
        get_logger().error(f"Extraction failed for {image.name}: {type(e).__name__}: {e}")
        return ExtractionOutcome(
            image.name, ConversionOutput.empty(), failed=True, error=str(e), usages=usages
        )


class QuestionSession:
    """Single top-level controller for one user session."""

    def __init__(self):
        self.images: list[ImageFile] = []
        self.conversions: dict[str, ConversionOutput] = {}
        self.selected: Optional[SelectedImage] = None
        self.saved: set[str] = set()
        self.seen_upload_ids: set = set()
        self.generation = 0
        self.unrecorded_usages: list = []
        self._pending: list[tuple[int, str, Future]] = []

    # -------------------------------------------------------------------------
    # Intake & extraction
    # -------------------------------------------------------------------------

    def add_uploads(self, uploads) -> list[ImageFile]:
        """Accept new image uploads; the image list is append-only."""
        new_images = accept_uploads(uploads, self.seen_upload_ids)
        self.images.extend(new_images)
        return new_images

    def start_extractions(self, images: list[ImageFile], executor, extract_fn):
        """Fan out one extraction per image; completion order is unspecified."""
        for image in images:
            future = executor.submit(run_extraction, extract_fn, image)
            self._pending.append((self.generation, image.name, future))
        if images:
            get_logger().info(f"Started extraction for {len(images)} image(s)")

    def _store(self, generation: int, outcome: ExtractionOutcome) -> bool:
        # Results from before the last reset are stale
        if generation != self.generation:
            return False
        self.conversions[outcome.name] = outcome.output
        self.unrecorded_usages.extend(outcome.usages)
        return True

    def _finish(self, entry: tuple[int, str, Future]) -> Optional[ExtractionOutcome]:
        """Cache a done future's outcome and stop tracking it."""
        self._pending.remove(entry)
        generation, _, future = entry
        outcome = future.result()
        return outcome if self._store(generation, outcome) else None

    def collect_finished(self) -> list[ExtractionOutcome]:
        """Move already-finished extractions into the cache without blocking."""
        finished = []
        for entry in [p for p in self._pending if p[2].done()]:
            outcome = self._finish(entry)
            if outcome:
                finished.append(outcome)
        return finished

    def iter_completed(self, timeout: float = None):
        """Yield extraction outcomes as they complete, caching each one."""
        entries = {entry[2]: entry for entry in self._pending}
        try:
            for future in as_completed(entries, timeout=timeout):
                entry = entries[future]
                if entry not in self._pending:
                    continue
                outcome = self._finish(entry)
                if outcome:
                    yield outcome
        finally:
            # Closing the generator early must not lose results that already arrived
            self.collect_finished()

    def take_usages(self) -> list:
        """(model_id, usage) pairs from cached extractions not yet recorded."""
        usages, self.unrecorded_usages = self.unrecorded_usages, []
        return usages

    @property
    def pending_names(self) -> list[str]:
        return [name for _, name, future in self._pending if not future.done()]

    def extraction_progress(self) -> float:
        """Share of known images with a cached extraction, in [0, 1]."""
        if not self.images:
            return 1.0
        done = sum(1 for image in self.images if self.is_ready(image.name))
        return min(1.0, done / len(self.images))

    def is_ready(self, name: str) -> bool:
        return name in self.conversions

    def is_pending(self, name: str) -> bool:
        return not self.is_ready(name) and name in self.pending_names

    # -------------------------------------------------------------------------
    # Selection & saved set
    # -------------------------------------------------------------------------

    def select(self, image: ImageFile) -> bool:
        """Make image the active selection. No-op until its extraction is cached."""
        output = self.conversions.get(image.name)
        if output is None:
            return False
        self.selected = SelectedImage(image=image, conversion_output=output)
        return True

    def is_selected(self, image: ImageFile) -> bool:
        # Identity, not name: distinct uploads may share a name
        return self.selected is not None and self.selected.image is image

    def mark_saved(self, name: str):
        self.saved.add(name)

    def is_saved(self, name: str) -> bool:
        return name in self.saved

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def reset(self):
        """Drop everything, releasing previews and abandoning in-flight extractions."""
        for _, _, future in self._pending:
            future.cancel()
        for image in self.images:
            image.release_preview()

        self.generation += 1
        self._pending = []
        self.images = []
        self.conversions = {}
        self.selected = None
        self.saved = set()
        self.seen_upload_ids = set()
        self.unrecorded_usages = []

    def summary(self) -> dict:
        return {
            "images": len(self.images),
            "extracted": len(self.conversions),
            "pending": len(self.pending_names),
            "saved": len(self.saved),
        }
