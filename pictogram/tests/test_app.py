import argparse
import json

import pytest
from PIL import Image

from pictogram.app import main, parse_operation
from pictogram.formats import OutputFormat
from pictogram.imaging.operations import ConvertFormat, FlipHorizontal, Resize, RotateRight


@pytest.mark.parametrize("text,expected", [
    ("rotate-right", RotateRight()),
    ("FLIP-H", FlipHorizontal()),
    ("resize=800x600", Resize(width=800, height=600)),
    ("resize=150x", Resize(width=150)),
    ("resize=x90", Resize(height=90)),
    ("convert=jpg", ConvertFormat(to=OutputFormat.JPEG)),
])
def test_parse_operation(text, expected):
    assert parse_operation(text) == expected


@pytest.mark.parametrize("text", ["spin", "resize=x", "resize=abc", "convert=tiff", "rotate-right=2"])
def test_parse_operation_rejects(text):
    with pytest.raises(argparse.ArgumentTypeError):
        parse_operation(text)


@pytest.fixture
def photo(tmp_path, make_image_bytes):
    path = tmp_path / "photo.jpg"
    path.write_bytes(make_image_bytes(400, 300, "JPEG"))
    return path


def test_edit_writes_result(photo, tmp_path, capsys):
    out_dir = tmp_path / "out"
    code = main([
        "edit", str(photo),
        "--op", "rotate-right",
        "--op", "resize=150x",
        "--format", "png",
        "--output-dir", str(out_dir),
    ])
    assert code == 0
    written = out_dir / "photo.png"
    with Image.open(written) as im:
        assert im.size == (150, 200)
        assert im.format == "PNG"
    assert str(written) in capsys.readouterr().out
    # The source is never modified
    with Image.open(photo) as im:
        assert im.size == (400, 300)


def test_edit_invalid_operation_is_usage_error(photo):
    with pytest.raises(SystemExit) as exc:
        main(["edit", str(photo), "--op", "sharpen"])
    assert exc.value.code == 2


def test_edit_missing_file(tmp_path):
    assert main(["edit", str(tmp_path / "missing.png")]) == 1


def test_edit_undecodable_file(tmp_path):
    bad = tmp_path / "bad.png"
    bad.write_bytes(b"garbage")
    assert main(["edit", str(bad), "--output-dir", str(tmp_path / "out")]) == 1


def test_edit_sidecar_round_trip(photo, tmp_path):
    out_dir = tmp_path / "out"
    assert main(["edit", str(photo), "--op", "rotate-left", "--output-dir", str(out_dir), "--save-sidecar"]) == 0
    stored = json.loads((photo.parent / "pictogram.json").read_text())
    assert [op["type"] for op in stored["entries"]["photo.jpg"]] == ["rotate_left"]

    assert main(["edit", str(photo), "--from-sidecar", "--op", "resize=x100",
                 "--output-dir", str(out_dir), "--overwrite"]) == 0
    with Image.open(out_dir / "photo.png") as im:
        assert im.size == (75, 100)


def test_thumbs(tmp_path, make_image_bytes):
    src = tmp_path / "gallery"
    src.mkdir()
    (src / "one.png").write_bytes(make_image_bytes(500, 400))
    (src / "two.jpg").write_bytes(make_image_bytes(90, 60, "JPEG"))
    (src / "notes.txt").write_text("skip me")

    assert main(["thumbs", str(src), "--workers", "2"]) == 0
    thumbs = sorted(p.name for p in (src / "thumbnails").iterdir())
    assert thumbs == ["one.png.thumb.png", "two.jpg.thumb.png"]
    with Image.open(src / "thumbnails" / "two.jpg.thumb.png") as im:
        assert im.size == (140, 120)


def test_thumbs_reports_failures(tmp_path, make_image_bytes):
    (tmp_path / "good.png").write_bytes(make_image_bytes(200, 200))
    (tmp_path / "bad.png").write_bytes(b"nope")
    assert main(["thumbs", str(tmp_path), "--output-dir", str(tmp_path / "t")]) == 1
    assert [p.name for p in (tmp_path / "t").iterdir()] == ["good.png.thumb.png"]


def test_thumbs_not_a_directory(tmp_path):
    assert main(["thumbs", str(tmp_path / "nope")]) == 1


def test_thumbs_same_stem_different_extension(tmp_path, make_image_bytes):
    (tmp_path / "a.png").write_bytes(make_image_bytes(200, 200, color=(255, 0, 0)))
    (tmp_path / "a.jpg").write_bytes(make_image_bytes(200, 200, "JPEG", color=(0, 0, 255)))
    out = tmp_path / "t"
    assert main(["thumbs", str(tmp_path), "--output-dir", str(out)]) == 0
    assert sorted(p.name for p in out.iterdir()) == ["a.jpg.thumb.png", "a.png.thumb.png"]
    with Image.open(out / "a.png.thumb.png") as im:
        assert im.convert("RGB").getpixel((70, 60)) == (255, 0, 0)


def test_thumbs_unwritable_output_dir(tmp_path, make_image_bytes, capsys):
    (tmp_path / "a.png").write_bytes(make_image_bytes(200, 200))
    blocker = tmp_path / "blocker.txt"
    blocker.write_text("not a directory")
    assert main(["thumbs", str(tmp_path), "--output-dir", str(blocker / "thumbs")]) == 1
    assert "0 of 1 thumbnails written" in capsys.readouterr().out
