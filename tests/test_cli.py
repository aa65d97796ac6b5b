"""Tests for the command line interface."""

import pytest
from click.testing import CliRunner

from ambient_loop import cli
from ambient_loop.presets import PRESET_OUTPUT_FILENAMES


@pytest.fixture
def runner():
    return CliRunner()


def test_generate_small_loop(runner, tmp_path):
    output = tmp_path / "calm_loop.wav"
    result = runner.invoke(
        cli.main,
        ["generate", "--output", str(output), "--sample-rate", "8000", "--duration-sec", "1", "--seed", "1"],
    )

    assert result.exit_code == 0, result.output
    assert output.stat().st_size == 32_044
    assert "done: samples 8000, size 32044 bytes" in result.output


def test_generate_rejects_invalid_duration(runner, tmp_path):
    result = runner.invoke(
        cli.main, ["generate", "--output", str(tmp_path / "x.wav"), "--duration-sec", "0"]
    )

    assert result.exit_code == 1
    assert "duration_sec must be positive" in result.output


def test_generate_reports_unwritable_destination(runner, tmp_path):
    output = tmp_path / "missing" / "calm_loop.wav"
    result = runner.invoke(
        cli.main, ["generate", "--output", str(output), "--sample-rate", "8000", "--duration-sec", "1"]
    )

    assert result.exit_code == 1
    assert "could not write" in result.output
    assert not output.exists()


def test_generate_mp3_requires_ffmpeg(runner, tmp_path, monkeypatch):
    monkeypatch.setattr(cli.shutil, "which", lambda name: None)
    output = tmp_path / "calm_loop.wav"
    result = runner.invoke(
        cli.main,
        ["generate", "--output", str(output), "--sample-rate", "8000", "--duration-sec", "1", "--with-mp3"],
    )

    assert result.exit_code == 1
    assert "ffmpeg not found" in result.output
    assert not output.exists()


def test_generate_mp3_invokes_ffmpeg(runner, tmp_path, monkeypatch):
    calls = []

    def fake_encode(ffmpeg_path, args, input_path, output_path):
        calls.append((ffmpeg_path, args, input_path, output_path))

    monkeypatch.setattr(cli.shutil, "which", lambda name: "/usr/bin/ffmpeg")
    monkeypatch.setattr(cli, "_encode_with_ffmpeg", fake_encode)
    output = tmp_path / "calm_loop.wav"
    result = runner.invoke(
        cli.main,
        ["generate", "--output", str(output), "--sample-rate", "8000", "--duration-sec", "1", "--with-mp3"],
    )

    assert result.exit_code == 0, result.output
    assert calls == [
        ("/usr/bin/ffmpeg", ["-c:a", "libmp3lame", "-b:a", "192k"], output, output.with_suffix(".mp3"))
    ]


def test_generate_all_renders_every_preset(runner, tmp_path, monkeypatch):
    rendered = []

    def fake_render(params, output, seed, chunk_size):
        rendered.append((params.preset_id, output.name))

    monkeypatch.setattr(cli, "_render", fake_render)
    result = runner.invoke(cli.main, ["generate-all", "--output-dir", str(tmp_path / "out")])

    assert result.exit_code == 0, result.output
    assert (tmp_path / "out").is_dir()
    assert rendered == list(PRESET_OUTPUT_FILENAMES.items())


def test_verify_passes_for_generated_loop(runner, tmp_path):
    output = tmp_path / "calm_loop.wav"
    generated = runner.invoke(
        cli.main,
        [
            "generate",
            "--output",
            str(output),
            "--sample-rate",
            "8000",
            "--duration-sec",
            "4",
            "--fade-sec",
            "1",
            "--seed",
            "2",
        ],
    )
    assert generated.exit_code == 0, generated.output

    result = runner.invoke(cli.main, ["verify", str(output)])

    assert result.exit_code == 0, result.output
    assert "RESULT: PASS" in result.output


def test_verify_fails_on_wrong_peak(runner, tmp_path):
    output = tmp_path / "calm_loop.wav"
    runner.invoke(
        cli.main,
        ["generate", "--output", str(output), "--sample-rate", "8000", "--duration-sec", "4", "--fade-sec", "1"],
    )

    result = runner.invoke(cli.main, ["verify", str(output), "--peak", "0.5"])

    assert result.exit_code == 1
    assert "RESULT: FAIL" in result.output
