from concurrent.futures import ThreadPoolExecutor

import pytest

from pictogram.errors import DecodeError, ExportError, FileValidationError, InvalidOperationError
from pictogram.formats import OutputFormat
from pictogram.imaging import codec
from pictogram.imaging.codec import decode
from pictogram.io.export import FileExportSink, MemoryExportSink
from pictogram.models import ExportArtifact
from pictogram.session import EditSession


@pytest.fixture
def session(make_image_bytes):
    s = EditSession(default_format=OutputFormat.PNG)
    s.load(make_image_bytes(400, 300, "JPEG"), "holiday.jpg")
    return s


def test_load_records_source(session):
    assert session.is_loaded
    assert session.filename == "holiday.jpg"
    assert session.source_format is OutputFormat.JPEG
    assert session.base_name == "holiday"
    assert session.operations.is_empty


def test_load_rejects_empty():
    with pytest.raises(FileValidationError):
        EditSession().load(b"", "a.png")


def test_load_rejects_oversize(make_image_bytes):
    data = make_image_bytes(64, 64)
    with pytest.raises(FileValidationError):
        EditSession(max_file_size=len(data) - 1).load(data, "a.png")


def test_load_rejects_unknown_extension(make_image_bytes):
    with pytest.raises(FileValidationError):
        EditSession().load(make_image_bytes(), "a.tiff")


def test_load_resets_log(session, make_image_bytes):
    session.rotate_right()
    session.load(make_image_bytes(10, 10), "other.png")
    assert session.operations.is_empty
    assert session.base_name == "other"


def test_apply_requires_source():
    with pytest.raises(FileValidationError):
        EditSession().rotate_right()


def test_apply_validates(session):
    with pytest.raises(InvalidOperationError):
        session.resize()
    assert session.operations.is_empty


def test_render_follows_log(session):
    session.rotate_right()
    session.resize(width=150)
    outcome = session.render()
    assert outcome.ok
    assert (outcome.result.width, outcome.result.height) == (150, 200)

    session.undo()
    assert (session.render().result.width, session.render().result.height) == (300, 400)
    session.redo()
    assert session.render().result.width == 150


def test_render_is_cached_until_log_changes(session):
    first = session.render()
    assert session.render() is first
    session.flip_vertical()
    assert session.render() is not first


def test_render_without_source_is_an_error_value():
    outcome = EditSession().render()
    assert not outcome.ok
    assert isinstance(outcome.error, FileValidationError)


def test_render_reports_decode_failure():
    s = EditSession()
    s.load(b"this is not a png", "broken.png")
    outcome = s.render()
    assert isinstance(outcome.error, DecodeError)
    assert not s.export(MemoryExportSink()).ok


def test_target_format_follows_convert(session):
    assert session.target_format is OutputFormat.PNG
    session.convert_format(OutputFormat.BMP)
    assert session.target_format is OutputFormat.BMP
    session.undo()
    assert session.target_format is OutputFormat.PNG


def test_reset_keeps_source(session):
    session.rotate_left()
    session.reset()
    assert session.is_loaded
    assert session.render().result.width == 400


def test_export_to_memory(session):
    session.convert_format(OutputFormat.JPEG)
    sink = MemoryExportSink()
    outcome = session.export(sink)
    assert outcome.ok
    assert outcome.destination == "holiday.jpg"
    artifact = sink.artifacts[0]
    assert artifact.mime_type == "image/jpeg"
    assert decode(artifact.data).size == (400, 300)


def test_export_name_follows_fallback(session, monkeypatch):
    monkeypatch.setattr(codec, "webp_supported", lambda: False)
    session.convert_format(OutputFormat.WEBP)
    outcome = session.export()
    assert outcome.ok
    assert outcome.artifact.filename == "holiday.png"
    assert outcome.artifact.mime_type == "image/png"
    assert outcome.artifact.format is OutputFormat.PNG


def test_export_to_directory_never_clobbers(session, tmp_path):
    sink = FileExportSink(tmp_path)
    first = session.export(sink)
    second = session.export(sink)
    assert first.destination.endswith("holiday.png")
    assert second.destination.endswith("holiday-2.png")
    assert not list(tmp_path.glob("*.tmp"))


def test_export_overwrite(session, tmp_path):
    sink = FileExportSink(tmp_path, overwrite=True)
    session.export(sink)
    session.export(sink)
    assert [p.name for p in tmp_path.iterdir()] == ["holiday.png"]


def test_export_failure_is_a_value(session, tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x")
    outcome = session.export(FileExportSink(blocker / "sub"))
    assert not outcome.ok
    assert isinstance(outcome.error, ExportError)


def test_close(session):
    session.close()
    assert not session.is_loaded
    assert session.original_bytes is None


def test_oversized_resize_rejected_before_render(session):
    with pytest.raises(InvalidOperationError):
        session.resize(width=300000, height=300000)
    assert session.operations.is_empty
    assert session.render().ok


def test_derived_side_over_limit_is_an_error_value(session):
    # 400x300 source: width 2,000,000 derives a 1,500,000 px height
    session.resize(width=2_000_000)
    outcome = session.render()
    assert not outcome.ok
    assert isinstance(outcome.error, InvalidOperationError)
    # The failure leaves the session usable
    session.undo()
    assert session.render().result.width == 400


def test_concurrent_exports_get_distinct_names(tmp_path, make_image_bytes):
    artifact = ExportArtifact(
        data=make_image_bytes(8, 8),
        filename="shared.png",
        mime_type="image/png",
        width=8,
        height=8,
        format=OutputFormat.PNG,
    )
    sink = FileExportSink(tmp_path)
    with ThreadPoolExecutor(max_workers=8) as pool:
        destinations = list(pool.map(lambda _: sink.save(artifact), range(8)))
    assert len(set(destinations)) == 8
    assert sorted(p.name for p in tmp_path.iterdir()) == sorted(
        ["shared.png"] + [f"shared-{i}.png" for i in range(2, 9)]
    )
    assert all(p.read_bytes() == artifact.data for p in tmp_path.iterdir())
