import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from models import ConversionOutput
from session import QuestionSession, run_extraction
from conftest import FakeUpload


def fixed_extract(question="Q", options=("A", "B")):
    def extract(data, mime_type, on_usage=None):
        if on_usage:
            on_usage("gpt-4.1-mini", {"input_tokens": 10, "output_tokens": 5})
        return ConversionOutput(question=question, options=options)
    return extract


@pytest.fixture
def executor():
    pool = ThreadPoolExecutor(max_workers=4)
    yield pool
    pool.shutdown(wait=True)


def test_select_before_extraction_finishes_is_a_no_op(executor, png_bytes: bytes) -> None:
    release = threading.Event()

    def slow_extract(data, mime_type, on_usage=None):
        release.wait(timeout=5)
        return ConversionOutput(question="Q", options=("A", "B"))

    session = QuestionSession()
    images = session.add_uploads([FakeUpload("q.png", "image/png", png_bytes, file_id="1")])
    session.start_extractions(images, executor, slow_extract)

    assert session.is_pending("q.png")
    assert session.select(images[0]) is False
    assert session.selected is None

    release.set()
    outcomes = list(session.iter_completed(timeout=5))

    assert [o.name for o in outcomes] == ["q.png"]
    assert session.select(images[0]) is True
    assert session.selected.conversion_output.question == "Q"


def test_failed_extraction_caches_empty_output(executor, png_bytes: bytes) -> None:
    def failing_extract(data, mime_type, on_usage=None):
        raise ValueError("model returned garbage")

    session = QuestionSession()
    images = session.add_uploads([FakeUpload("bad.png", "image/png", png_bytes)])
    session.start_extractions(images, executor, failing_extract)
    outcomes = list(session.iter_completed(timeout=5))

    assert outcomes[0].failed
    assert session.conversions["bad.png"] == ConversionOutput.empty()
    assert session.select(images[0]) is True


def test_out_of_order_completion_fills_every_entry(executor, png_bytes: bytes) -> None:
    delays = {"first.png": 0.2, "second.png": 0.0}

    def extract(data, mime_type, on_usage=None):
        name = data.decode()
        time.sleep(delays[name])
        return ConversionOutput(question=name, options=("A", "B"))

    session = QuestionSession()
    images = session.add_uploads([
        FakeUpload("first.png", "image/png", b"first.png"),
        FakeUpload("second.png", "image/png", b"second.png"),
    ])
    session.start_extractions(images, executor, extract)
    completed = [o.name for o in session.iter_completed(timeout=5)]

    assert completed == ["second.png", "first.png"]
    assert session.conversions["first.png"].question == "first.png"
    assert session.conversions["second.png"].question == "second.png"
    assert session.pending_names == []


def test_collect_finished_does_not_block(executor, png_bytes: bytes) -> None:
    release = threading.Event()

    def extract(data, mime_type, on_usage=None):
        release.wait(timeout=5)
        return ConversionOutput(question="Q", options=("A", "B"))

    session = QuestionSession()
    images = session.add_uploads([FakeUpload("q.png", "image/png", png_bytes)])
    session.start_extractions(images, executor, extract)

    assert session.collect_finished() == []
    release.set()
    executor.shutdown(wait=True)
    assert [o.name for o in session.collect_finished()] == ["q.png"]


def test_run_extraction_returns_usage() -> None:
    session = QuestionSession()
    image = session.add_uploads([FakeUpload("q.png", "image/png", b"x")])[0]
    outcome = run_extraction(fixed_extract(), image)
    assert outcome.usages == [("gpt-4.1-mini", {"input_tokens": 10, "output_tokens": 5})]
    assert not outcome.failed


def test_intake_is_append_only(executor, png_bytes: bytes) -> None:
    session = QuestionSession()
    session.add_uploads([FakeUpload("q.png", "image/png", png_bytes, file_id="1")])
    session.add_uploads([
        FakeUpload("q.png", "image/png", png_bytes, file_id="1"),
        FakeUpload("q.png", "image/png", png_bytes, file_id="2"),
    ])
    assert [image.upload_id for image in session.images] == ["1", "2"]


def test_saved_set(png_bytes: bytes) -> None:
    session = QuestionSession()
    session.mark_saved("q.png")
    assert session.is_saved("q.png")
    assert not session.is_saved("other.png")


def test_reset_releases_previews_and_drops_stale_results(executor, png_bytes: bytes) -> None:
    release = threading.Event()

    def extract(data, mime_type, on_usage=None):
        release.wait(timeout=5)
        return ConversionOutput(question="Q", options=("A", "B"))

    session = QuestionSession()
    images = session.add_uploads([FakeUpload("q.png", "image/png", png_bytes)])
    session.start_extractions(images, executor, extract)
    assert images[0].preview is not None

    session.reset()
    release.set()
    executor.shutdown(wait=True)

    assert images[0].preview is None
    assert session.collect_finished() == []
    assert session.conversions == {}
    assert session.summary() == {"images": 0, "extracted": 0, "pending": 0, "saved": 0}


def test_closing_collection_early_keeps_finished_results(executor) -> None:
    session = QuestionSession()
    images = session.add_uploads([
        FakeUpload("a.png", "image/png", b"a"),
        FakeUpload("b.png", "image/png", b"b"),
    ])
    session.start_extractions(images, executor, fixed_extract())
    executor.shutdown(wait=True)

    collecting = session.iter_completed(timeout=5)
    next(collecting)
    collecting.close()

    assert session.is_ready("a.png")
    assert session.is_ready("b.png")
    assert session.pending_names == []
    assert session.collect_finished() == []


def test_usages_are_handed_over_once(executor) -> None:
    session = QuestionSession()
    images = session.add_uploads([
        FakeUpload("a.png", "image/png", b"a"),
        FakeUpload("b.png", "image/png", b"b"),
    ])
    session.start_extractions(images, executor, fixed_extract())
    executor.shutdown(wait=True)

    collecting = session.iter_completed(timeout=5)
    next(collecting)
    collecting.close()

    assert len(session.take_usages()) == 2
    assert session.take_usages() == []


def test_extraction_progress_stays_within_bounds(executor) -> None:
    release = threading.Event()

    def extract(data, mime_type, on_usage=None):
        if data == b"slow":
            release.wait(timeout=5)
        return ConversionOutput(question="Q", options=("A", "B"))

    session = QuestionSession()
    assert session.extraction_progress() == 1.0

    images = session.add_uploads([
        FakeUpload("fast.png", "image/png", b"fast"),
        FakeUpload("slow.png", "image/png", b"slow"),
    ])
    session.start_extractions(images, executor, extract)
    assert session.extraction_progress() == 0.0

    collecting = session.iter_completed(timeout=5)
    assert next(collecting).name == "fast.png"
    assert session.extraction_progress() == 0.5

    release.set()
    list(collecting)
    assert session.extraction_progress() == 1.0


def test_selection_is_tracked_by_image_not_name(executor, png_bytes: bytes) -> None:
    session = QuestionSession()
    images = session.add_uploads([
        FakeUpload("q.png", "image/png", png_bytes, file_id="1"),
        FakeUpload("q.png", "image/png", png_bytes, file_id="2"),
    ])
    session.start_extractions(images, executor, fixed_extract())
    list(session.iter_completed(timeout=5))

    assert session.select(images[1])
    assert session.is_selected(images[1])
    assert not session.is_selected(images[0])
