from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import click

from ambient_loop.generators.ambient import (
    DEFAULT_OUTPUT_PATH,
    RenderResult,
    render_loop_to_wav,
)
from ambient_loop.presets import (
    PRESETS,
    PRESET_OUTPUT_FILENAMES,
    SynthesisParams,
    get_preset_params,
)
from ambient_loop.verify import verify_wav


@click.group()
def main() -> None:
    """Generate and verify the Mirror ambient background loop."""


@main.command(name="generate")
@click.option(
    "--preset",
    type=click.Choice(list(PRESETS.keys())),
    default="calm_loop",
    show_default=True,
)
@click.option(
    "--output",
    type=click.Path(path_type=Path, file_okay=True, dir_okay=False),
    default=DEFAULT_OUTPUT_PATH,
    show_default=True,
)
@click.option("--duration-sec", type=int, default=None, help="Override the preset duration.")
@click.option("--sample-rate", type=int, default=None, help="Override the preset sample rate.")
@click.option("--fade-sec", type=float, default=None, help="Override the loop fade length.")
@click.option("--peak", type=float, default=None, help="Override the normalization peak.")
@click.option("--seed", type=int, default=None, help="Seed the texture noise for repeatable output.")
@click.option("--chunk-size", type=int, default=1_048_576, show_default=True)
@click.option("--with-mp3/--no-mp3", default=False, show_default=True)
@click.option("--mp3-bitrate-kbps", type=int, default=192, show_default=True)
def generate(
    preset: str,
    output: Path,
    duration_sec: int | None,
    sample_rate: int | None,
    fade_sec: float | None,
    peak: float | None,
    seed: int | None,
    chunk_size: int,
    with_mp3: bool,
    mp3_bitrate_kbps: int,
) -> None:
    overrides: dict[str, object] = {
        "duration_sec": duration_sec,
        "sample_rate": sample_rate,
        "fade_sec": fade_sec,
        "peak_target": peak,
    }
    try:
        params = get_preset_params(
            preset,
            overrides={key: value for key, value in overrides.items() if value is not None},
        )
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc

    ffmpeg_path = shutil.which("ffmpeg")
    if with_mp3 and ffmpeg_path is None:
        raise click.ClickException("ffmpeg not found but MP3 encoding was requested")

    result = _render(params=params, output=output, seed=seed, chunk_size=chunk_size)

    if with_mp3 and ffmpeg_path is not None:
        mp3_path = result.output_path.with_suffix(".mp3")
        _encode_with_ffmpeg(
            ffmpeg_path=ffmpeg_path,
            args=[
                "-c:a",
                "libmp3lame",
                "-b:a",
                f"{mp3_bitrate_kbps}k",
            ],
            input_path=result.output_path,
            output_path=mp3_path,
        )
        click.echo(f"encoded mp3: {mp3_path}")


@main.command(name="generate-all")
@click.option(
    "--output-dir",
    type=click.Path(path_type=Path, file_okay=False, dir_okay=True),
    required=True,
)
@click.option("--seed", type=int, default=None)
@click.option("--chunk-size", type=int, default=1_048_576, show_default=True)
def generate_all(output_dir: Path, seed: int | None, chunk_size: int) -> None:
    output_dir.mkdir(parents=True, exist_ok=True)
    for preset_id in PRESETS:
        output_file = output_dir / PRESET_OUTPUT_FILENAMES[preset_id]
        click.echo(f"\n== {preset_id} -> {output_file} ==")
        _render(
            params=get_preset_params(preset_id),
            output=output_file,
            seed=seed,
            chunk_size=chunk_size,
        )


@main.command(name="verify")
@click.argument("wav_path", type=click.Path(path_type=Path, exists=True, dir_okay=False))
@click.option("--peak", type=float, default=0.85, show_default=True)
def verify_command(wav_path: Path, peak: float) -> None:
    try:
        result = verify_wav(path=wav_path, peak_target=peak)
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"path: {result.path}")
    click.echo(f"duration_sec: {result.duration_sec:.3f}")
    click.echo(f"sample_rate: {result.sample_rate}")
    click.echo(f"rms_dbfs: {result.rms_dbfs:.3f}")
    click.echo(f"peak_dbfs: {result.peak_dbfs:.3f}")
    click.echo(f"peak_counts: {result.peak_counts} (expected {result.expected_peak_counts:.2f})")
    click.echo(f"head_level: {result.head_level:.5f}")
    click.echo(f"tail_level: {result.tail_level:.5f}")
    click.echo(f"seam_jump: {result.seam_jump:.5f}")
    for problem in result.problems:
        click.echo(f"problem: {problem}")
    click.echo(f"RESULT: {'PASS' if result.passed else 'FAIL'}")
    if not result.passed:
        raise click.ClickException("Loop verification failed")


def _render(
    params: SynthesisParams, output: Path, seed: int | None, chunk_size: int
) -> RenderResult:
    if chunk_size <= 0:
        raise click.ClickException("--chunk-size must be positive")
    try:
        return render_loop_to_wav(
            params=params,
            output_path=output,
            log=click.echo,
            seed=seed,
            chunk_size=chunk_size,
        )
    except OSError as exc:
        raise click.ClickException(f"could not write {output}: {exc}") from exc


def _encode_with_ffmpeg(
    ffmpeg_path: str, args: list[str], input_path: Path, output_path: Path
) -> None:
    command = [
        ffmpeg_path,
        "-hide_banner",
        "-loglevel",
        "error",
        "-y",
        "-i",
        str(input_path),
        *args,
        str(output_path),
    ]
    completed = subprocess.run(
        command,
        capture_output=True,
        text=True,
        check=False,
    )
    if completed.returncode != 0:
        message = completed.stderr.strip() or completed.stdout.strip() or "ffmpeg failed"
        raise click.ClickException(message)


if __name__ == "__main__":
    main()
