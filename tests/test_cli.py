import json

from bundle_locator.cli import main

from bundles import DEPS_JSON, build_app_host, build_elf


def test_locate_prints_location(write_file, capsys):
    host = build_app_host()
    assert main([str(write_file(host.data))]) == 0
    out = capsys.readouterr().out
    assert "Bundle Locator" in out
    assert str(host.location) in out


def test_json_output(write_file, capsys):
    host = build_app_host()
    assert main([str(write_file(host.data)), "--json", "--strategy", "auto"]) == 0
    result = json.loads(capsys.readouterr().out)
    assert result["offset"] == hex(host.location.offset)
    assert result["size"] == host.location.size
    assert result["strategy"] == "signature"


def test_extract_and_dump(write_file, tmp_path, capsys):
    host = build_app_host()
    target = tmp_path / "out" / "app.deps.json"
    assert main([str(write_file(host.data)), "--extract", str(target), "--dump"]) == 0
    assert target.read_bytes() == DEPS_JSON
    out = capsys.readouterr().out
    assert "RuntimeLibraries" in out
    assert "Newtonsoft.Json 13.0.1 (package)" in out


def test_invalid_payload_for_dump(write_file, capsys):
    host = build_app_host(payload=b'not json')
    assert main([str(write_file(host.data)), "--dump"]) == 1
    assert "Invalid .deps.json payload" in capsys.readouterr().err


def test_missing_file(tmp_path, capsys):
    assert main([str(tmp_path / "nope")]) == 1
    assert "File not found" in capsys.readouterr().err


def test_not_bundled(write_file, capsys):
    host = build_app_host(header_offset_override=0)
    assert main([str(write_file(host.data))]) == 1
    assert "Not a single-file app" in capsys.readouterr().err


def test_unsupported_platform(write_file, capsys):
    host = build_app_host()
    assert main([str(write_file(host.data)), "-s", "sections", "--platform", "beos"]) == 1
    assert "Unsupported platform" in capsys.readouterr().err


def test_auto_reports_winning_tier(write_file, capsys):
    host = build_elf()
    assert main([str(write_file(host.data)), "--strategy", "auto", "--platform", "linux"]) == 0
    assert f"{host.location} (via sections)" in capsys.readouterr().out
