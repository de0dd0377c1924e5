"""Tests for the command-line entry point."""

import json

import pytest
import trimesh

from routercam.__main__ import main
from routercam.config.settings import AppSettings


@pytest.fixture
def no_settings(tmp_path):
    return ["--settings", str(tmp_path / "none.json")]


@pytest.fixture
def shapes_json(tmp_path):
    path = tmp_path / "shapes.json"
    path.write_text(json.dumps([
        {"points": [[10, 10], [40, 10]]},
        {"type": "rect", "x": 50, "y": 50, "width": 30, "height": 20},
    ]))
    return path


@pytest.fixture
def box_stl(tmp_path):
    mesh = trimesh.creation.box(extents=(20.0, 10.0, 5.0))
    path = tmp_path / "box.stl"
    mesh.export(str(path))
    return path


class TestVectorInput:
    def test_default_output_path(self, shapes_json, no_settings, capsys):
        assert main([str(shapes_json), *no_settings]) == 0
        out_file = shapes_json.with_suffix(".gcode")
        text = out_file.read_text()
        assert "; Job: shapes" in text
        assert "Z-1.000" in text
        assert text.rstrip().endswith("M2 ; Program end")
        out = capsys.readouterr().out
        assert "Paths: 2" in out
        assert f"Wrote {out_file}" in out

    def test_explicit_output_and_depth(self, shapes_json, no_settings, tmp_path):
        target = tmp_path / "cut.nc"
        assert main([str(shapes_json), "-o", str(target), "--depth", "2", *no_settings]) == 0
        assert "Z-2.000" in target.read_text()

    def test_settings_file_supplies_defaults(self, shapes_json, tmp_path):
        settings = tmp_path / "settings.json"
        AppSettings(cut_depth=2.5, tool_preset="flat-6").save(settings)
        assert main([str(shapes_json), "--settings", str(settings)]) == 0
        text = shapes_json.with_suffix(".gcode").read_text()
        assert "Z-2.500" in text
        assert "D6.0mm" in text

    def test_tool_overrides(self, shapes_json, no_settings, capsys):
        args = [str(shapes_json), "--tool-preset", "vbit-60", "--angle", "90", "--rpm", "9000"]
        assert main(args + no_settings) == 0
        out = capsys.readouterr().out
        assert "v_bit D6.35 90deg" in out
        assert "S9000 M3" in shapes_json.with_suffix(".gcode").read_text()

    def test_malformed_entry(self, tmp_path, no_settings, capsys):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps([{"type": "star"}]))
        assert main([str(path), *no_settings]) == 1
        assert "Unrecognised vector entry" in capsys.readouterr().err
        assert not path.with_suffix(".gcode").exists()

    def test_validation_error_writes_nothing(self, shapes_json, no_settings, capsys):
        assert main([str(shapes_json), "--safe-z", "0", *no_settings]) == 1
        assert "VALIDATION ERRORS" in capsys.readouterr().err
        assert not shapes_json.with_suffix(".gcode").exists()


class TestMeshInput:
    def test_stl(self, box_stl, no_settings, capsys):
        args = [str(box_stl), "--resolution", "1", "--stepover", "2", *no_settings]
        assert main(args) == 0
        out = capsys.readouterr().out
        assert "Stock: 20.000 x 10.000 x 5.000" in out
        assert "Height map: 20 x 10" in out
        assert "Z5.000" in box_stl.with_suffix(".gcode").read_text()

    def test_centre_origin(self, box_stl, no_settings):
        args = [str(box_stl), "--origin", "center", "--resolution", "2", "--stepover", "2"]
        assert main(args + no_settings) == 0
        assert "X-10.000 Y-5.000" in box_stl.with_suffix(".gcode").read_text()

    def test_missing_file(self, tmp_path, no_settings, capsys):
        assert main([str(tmp_path / "nope.stl"), *no_settings]) == 1
        assert "Mesh file not found" in capsys.readouterr().err


class TestErrors:
    def test_unsupported_extension(self, tmp_path, no_settings, capsys):
        path = tmp_path / "drawing.dxf"
        path.write_text("")
        assert main([str(path), *no_settings]) == 1
        assert "unsupported input type '.dxf'" in capsys.readouterr().err

    def test_unknown_preset(self, shapes_json, no_settings, capsys):
        assert main([str(shapes_json), "--tool-preset", "laser", *no_settings]) == 1
        err = capsys.readouterr().err
        assert "unknown tool preset 'laser'" in err
        assert "flat-3.175" in err

    def test_log_file(self, shapes_json, no_settings, tmp_path):
        log_path = tmp_path / "run.log"
        assert main([str(shapes_json), "-v", "--log-file", str(log_path), *no_settings]) == 0
        assert "Arguments:" in log_path.read_text()
