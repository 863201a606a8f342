"""Batch CLI: per-file isolation, summary and exit status."""

from pathlib import Path
from unittest.mock import MagicMock

from aquapanel.core.errors import PersistenceError
from aquapanel.ml.inference import QuadrantExtractor
from conftest import encode_png, make_panel
from tools import process_image


def _write_panel(tmp_path, name):
    path = tmp_path / name
    path.write_bytes(encode_png(make_panel()))
    return path


def test_processes_files_and_stores_by_filename_unit(tmp_path, fake_engine, capsys):
    path = _write_panel(tmp_path, "unit_3_20250105_143022.png")
    store = MagicMock()

    code = process_image.run([path], extractor=QuadrantExtractor(fake_engine), store=store)

    assert code == 0
    unit, readings = store.save.call_args.args
    assert unit == "unit_3"
    assert readings["salinity"] == "35.00"
    out = capsys.readouterr().out
    assert "Successfully processed: 1" in out
    assert "Failed: 0" in out


def test_missing_and_broken_files_fail_without_stopping_the_batch(tmp_path, fake_engine, capsys):
    good = _write_panel(tmp_path, "unit_1.png")
    broken = tmp_path / "unit_2.png"
    broken.write_bytes(b"not an image")
    missing = tmp_path / "unit_9.png"
    store = MagicMock()

    code = process_image.run([broken, missing, good], extractor=QuadrantExtractor(fake_engine), store=store)

    assert code == 1
    store.save.assert_called_once()
    assert "Failed: 2" in capsys.readouterr().out


def test_store_failure_marks_file_failed(tmp_path, fake_engine):
    path = _write_panel(tmp_path, "unit_1.png")
    store = MagicMock()
    store.save.side_effect = PersistenceError("down")

    assert process_image.run([path], extractor=QuadrantExtractor(fake_engine), store=store) == 1


def test_dry_run_never_touches_the_store(tmp_path, fake_engine, monkeypatch):
    path = _write_panel(tmp_path, "unit_1.png")
    monkeypatch.setattr(process_image, "get_reading_store", MagicMock(side_effect=AssertionError))

    assert process_image.run([path], dry_run=True, extractor=QuadrantExtractor(fake_engine)) == 0


def test_unit_id_override(tmp_path, fake_engine):
    path = _write_panel(tmp_path, "photo.png")
    store = MagicMock()

    process_image.run([path], unit_id="tank_4", extractor=QuadrantExtractor(fake_engine), store=store)

    assert store.save.call_args.args[0] == "tank_4"


def test_main_reports_unconfigured_store(tmp_path, monkeypatch):
    path = _write_panel(tmp_path, "unit_1.png")
    monkeypatch.setattr(process_image, "get_extractor", MagicMock())
    monkeypatch.setattr(process_image, "get_reading_store", MagicMock(side_effect=PersistenceError("no creds")))

    assert process_image.main([str(path)]) == 1


def test_unreadable_file_does_not_stop_the_batch(tmp_path, fake_engine, monkeypatch, capsys):
    unreadable = _write_panel(tmp_path, "unit_1.png")
    good = _write_panel(tmp_path, "unit_2.png")
    real_read_bytes = Path.read_bytes

    def read_bytes(self):
        if self == unreadable:
            raise OSError(5, "Input/output error")
        return real_read_bytes(self)

    monkeypatch.setattr(Path, "read_bytes", read_bytes)
    store = MagicMock()

    code = process_image.run([unreadable, good], extractor=QuadrantExtractor(fake_engine), store=store)

    assert code == 1
    store.save.assert_called_once()
    assert store.save.call_args.args[0] == "unit_2"
    assert "Failed: 1" in capsys.readouterr().out
