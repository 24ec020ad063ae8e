import io

from PIL import Image

from image_intake import accept_uploads, is_image_upload, make_preview
from conftest import FakeUpload, make_png


def test_non_image_uploads_are_filtered(png_bytes: bytes) -> None:
    uploads = [
        FakeUpload("q1.png", "image/png", png_bytes),
        FakeUpload("notes.pdf", "application/pdf", b"%PDF-1.4"),
        FakeUpload("q2.jpg", "image/jpeg", png_bytes),
        FakeUpload("readme.txt", "text/plain", b"hello"),
    ]
    accepted = accept_uploads(uploads)
    assert [image.name for image in accepted] == ["q1.png", "q2.jpg"]
    assert [image.mime_type for image in accepted] == ["image/png", "image/jpeg"]


def test_missing_mime_type_is_not_an_image() -> None:
    assert not is_image_upload(FakeUpload("mystery", None, b""))


def test_preview_is_a_small_png() -> None:
    preview = make_preview(make_png(size=(1600, 900)))
    with Image.open(io.BytesIO(preview)) as img:
        assert img.format == "PNG"
        assert max(img.size) <= 320


def test_undecodable_image_keeps_raw_bytes_as_preview() -> None:
    accepted = accept_uploads([FakeUpload("broken.png", "image/png", b"not really a png")])
    assert len(accepted) == 1
    assert accepted[0].preview == b"not really a png"


def test_redelivered_upload_is_skipped_but_same_name_is_kept(png_bytes: bytes) -> None:
    seen = set()
    first = accept_uploads([FakeUpload("q.png", "image/png", png_bytes, file_id="a")], seen)
    again = accept_uploads([
        FakeUpload("q.png", "image/png", png_bytes, file_id="a"),
        FakeUpload("q.png", "image/png", png_bytes, file_id="b"),
    ], seen)

    assert len(first) == 1
    assert [image.upload_id for image in again] == ["b"]
    assert seen == {"a", "b"}
