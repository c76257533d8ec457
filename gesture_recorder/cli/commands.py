"""CLI commands for Gesture Recorder.

This module provides all command-line interface commands using Typer.
"""

import signal
import sys
import threading
from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from rich.panel import Panel
from rich.table import Table

from gesture_recorder.core import (
    CaptureError,
    CaptureErrorHandler,
    GestureClassifier,
    KeyEventDispatcher,
    MicrophoneCapture,
    NetworkPrecondition,
    RecordingController,
    RecordingLogger,
    S3Uploader,
    StorageManager,
    TimestampPathFactory,
    UploadQueue,
)
from gesture_recorder.core.capture import list_devices as list_input_devices
from gesture_recorder.core.config import (
    AppConfig, RATE, FILE_EXTENSION, RECORDINGS_DIR, LONG_PRESS_THRESHOLD_MS, TRIGGER_KEY,
)
from gesture_recorder.core.keys import VolumeKeyListener
from gesture_recorder.cli.utils import (
    console,
    configure_logging,
    make_device_table,
    make_pending_table,
    make_recordings_table,
    render_feedback,
    suppress_stderr,
)

app = typer.Typer(help="Record audio by long-pressing a hardware key and upload it on unmetered networks")

app_config = AppConfig()
default_output_dir = str(app_config.get("output_dir", RECORDINGS_DIR))
default_rate = int(app_config.get("rate", RATE))
default_file_extension = str(app_config.get("file_extension", FILE_EXTENSION))
default_threshold_ms = int(app_config.get("long_press_threshold_ms", LONG_PRESS_THRESHOLD_MS))
default_key = str(app_config.get("key", TRIGGER_KEY))
default_device_id = app_config.get("device_id")


def _build_uploader(upload_enabled: bool) -> Optional[S3Uploader]:
    """Create the S3 uploader from YAML configuration, if possible."""
    if not upload_enabled:
        logger.info('S3 upload disabled by CLI flag')
        return None

    s3_config = app_config.get_s3_config()
    if not s3_config:
        logger.warning('S3 upload disabled: no `s3` config found in .gesture-recorder.yml')
        return None
    try:
        return S3Uploader.from_dict(s3_config)
    except ValueError as error:
        logger.warning(f'S3 upload disabled: {error}')
        return None


def _build_precondition() -> NetworkPrecondition:
    return NetworkPrecondition(
        require_unmetered=bool(app_config.get("require_unmetered", True)),
        assume_unmetered=bool(app_config.get("assume_unmetered", False)),
    )


def _build_upload_queue(
    output_dir: Path,
    recording_logger: Optional[RecordingLogger] = None,
    upload_enabled: bool = True,
) -> UploadQueue:
    return UploadQueue(
        uploader=_build_uploader(upload_enabled),
        precondition=_build_precondition(),
        queue_path=app_config.get_queue_path(output_dir),
        backoff_initial_sec=float(app_config.get("backoff_initial_sec")),
        backoff_max_sec=float(app_config.get("backoff_max_sec")),
        poll_interval_sec=float(app_config.get("poll_interval_sec")),
        recording_logger=recording_logger,
    )


def _build_capture(rate: int, device_id: Optional[int]) -> MicrophoneCapture:
    return MicrophoneCapture(
        rate=rate,
        chunk=int(app_config.get("chunk")),
        channels=int(app_config.get("channels")),
        device_id=device_id,
    )


def _report_capture_error(error: CaptureError) -> None:
    console.print(f"[error]✗ {error}[/error]")


@app.command()
def listen(
    output: str = typer.Option(default_output_dir, help="Output directory for recordings"),
    threshold_ms: int = typer.Option(
        default_threshold_ms, "--threshold-ms", help="Hold time in milliseconds that counts as a long press"
    ),
    key: str = typer.Option(default_key, help="pynput key name that toggles recording"),
    device_id: Optional[int] = typer.Option(
        default_device_id, help="Audio device ID to use. Leave empty for the system default."
    ),
    rate: int = typer.Option(default_rate, help="Sample rate in Hz (device native rate wins)"),
    format: str = typer.Option(default_file_extension, help="Audio format: flac, wav or ogg"),
    upload: bool = typer.Option(
        True,
        "--upload/--no-upload",
        help="Upload finished recordings when an unmetered network is available.",
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show debug output from audio libraries"
    ),
    log_file: Optional[str] = typer.Option(
        None,
        help=(
            "Override the activity log filename (relative to --output directory). "
            "Defaults to the value from .gesture-recorder.yml or 'recordings.jsonl'."
        ),
    ),
):
    """Wait for long presses and toggle recording on each one."""
    configure_logging(verbose)

    output_dir = Path(output)
    output_dir.mkdir(parents=True, exist_ok=True)
    log_path = output_dir / log_file if log_file else app_config.get_log_path(output_dir)
    recording_logger = RecordingLogger(log_path)
    storage = StorageManager(output_dir, extension=format)
    upload_queue = _build_upload_queue(output_dir, recording_logger, upload)

    try:
        classifier = GestureClassifier(threshold_ms)
    except ValueError as e:
        console.print(f"[error]✗ {e}[/error]")
        sys.exit(1)

    controller = RecordingController(
        capture=_build_capture(rate, device_id),
        path_factory=TimestampPathFactory(
            output_dir,
            extension=format,
            prefix=str(app_config.get("filename_prefix")),
            datetime_format=str(app_config.get("datetime_format")),
        ),
        classifier=classifier,
        on_error=CaptureErrorHandler(storage, on_error=_report_capture_error),
        recording_logger=recording_logger,
    )
    dispatcher = KeyEventDispatcher(controller, upload_queue, on_feedback=render_feedback)
    listener = VolumeKeyListener(key)

    info_grid = Table.grid(padding=(0, 1))
    info_grid.add_column(style="dim", justify="right")
    info_grid.add_column()
    info_grid.add_row("Trigger:", f"hold {key} for {threshold_ms} ms")
    info_grid.add_row("Device:", "default" if device_id is None else str(device_id))
    info_grid.add_row("Format:", format.upper())
    info_grid.add_row("Output:", str(output_dir))
    info_grid.add_row("Log:", str(log_path))
    info_grid.add_row("Upload:", "[green]enabled[/green]" if upload else "[yellow]bypassed (--no-upload)[/yellow]")
    info_grid.add_row("Pending:", str(len(upload_queue.pending)))
    console.print(Panel(info_grid, title="[bold]🎙 Gesture Recorder[/bold]", border_style="green"))

    stop_event = threading.Event()

    def signal_handler(sig, frame):
        console.print("\n[warning]⏹ Received interrupt signal, shutting down...[/warning]")
        stop_event.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        dispatcher.start()
        if upload:
            upload_queue.start()
        if verbose:
            listener.start(dispatcher.submit)
        else:
            with suppress_stderr():
                listener.start(dispatcher.submit)
        console.print("[info]Ready. Long-press to start or stop recording, Ctrl+C to quit.[/info]")
        while not stop_event.wait(0.5):
            pass
    except (ImportError, ValueError) as e:
        console.print(f"[error]✗ Cannot listen for {key}: {e}[/error]")
        sys.exit(1)
    finally:
        listener.stop()
        dispatcher.stop()
        upload_queue.stop()

    console.print("[success]✓ Stopped[/success]")


@app.command()
def list_devices(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show debug output from audio libraries"
    ),
):
    """List all available input audio devices."""
    configure_logging(verbose)
    try:
        if verbose:
            devices = list_input_devices()
        else:
            with suppress_stderr():
                devices = list_input_devices()
    except (ImportError, OSError) as e:
        console.print(f"[error]✗ Error listing devices: {e}[/error]")
        sys.exit(1)

    console.print(Panel(make_device_table(devices), title="[bold]Available Input Devices[/bold]"))


@app.command()
def recordings(
    output: str = typer.Option(default_output_dir, help="Recordings directory"),
    format: str = typer.Option(default_file_extension, help="Recording file extension"),
):
    """List stored recordings, newest first."""
    storage = StorageManager(output, extension=format)
    items = storage.list_recordings()
    if not items:
        console.print("[dim]No recordings found[/dim]")
        return
    console.print(Panel(make_recordings_table(items), title=f"[bold]Recordings ({len(items)})[/bold]"))


@app.command()
def delete(
    path: str = typer.Argument(..., help="Recording file name or path"),
    output: str = typer.Option(default_output_dir, help="Recordings directory"),
):
    """Delete a stored recording."""
    storage = StorageManager(output)
    if storage.delete_recording(path):
        console.print(f"[success]✓ Deleted {path}[/success]")
    else:
        console.print(f"[error]✗ Recording not found: {path}[/error]")
        sys.exit(1)


@app.command()
def upload(
    output: str = typer.Option(default_output_dir, help="Recordings directory"),
    force: bool = typer.Option(
        False, "--force", help="Ignore the network precondition and retry delays"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug output"),
):
    """Upload queued recordings now."""
    configure_logging(verbose)
    output_dir = Path(output)
    recording_logger = RecordingLogger(app_config.get_log_path(output_dir))
    upload_queue = _build_upload_queue(output_dir, recording_logger)

    pending = upload_queue.pending
    if not pending:
        console.print("[dim]Nothing to upload[/dim]")
        return
    if app_config.get_s3_config() is None:
        console.print("[error]✗ S3 storage not configured[/error]")
        sys.exit(1)

    uploaded = upload_queue.process_due(force=force)
    remaining = upload_queue.pending
    console.print(f"[success]✓ Uploaded {uploaded} of {len(pending)} recording(s)[/success]")
    if remaining:
        if uploaded == 0 and not force:
            console.print("[warning]Uploads wait for an unmetered network or a retry delay; use --force to override[/warning]")
        console.print(Panel(make_pending_table(remaining), title="[bold]Still pending[/bold]"))


@app.command()
def status(
    output: str = typer.Option(default_output_dir, help="Recordings directory"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug output"),
):
    """Show storage, network and upload queue status.

    If an S3 configuration is present in ``.gesture-recorder.yml`` the command
    will attempt a lightweight health check on the configured bucket and
    report whether it is reachable.
    """
    configure_logging(verbose)

    console.rule("[bold]📋 Gesture Recorder Status[/bold]")
    console.print()

    # S3 storage status
    s3_conf = app_config.get_s3_config()
    if not s3_conf:
        console.print("[dim]S3 storage not configured[/dim]")
    else:
        try:
            uploader = S3Uploader.from_dict(s3_conf)
            if uploader.check_bucket():
                console.print(f"[info]S3 storage available: bucket {uploader.bucket}[/info]")
            else:
                console.print(f"[warning]S3 storage not reachable (bucket: {uploader.bucket})[/warning]")
        except Exception as e:  # include config errors
            console.print(f"[error]Failed to initialize S3 client: {e}[/error]")

    precondition = _build_precondition()
    ready = "[green]met[/green]" if precondition() else "[yellow]not met[/yellow]"
    console.print(f"Network: {precondition.describe()} (upload precondition {ready})")

    upload_queue = UploadQueue(
        uploader=None,
        precondition=precondition,
        queue_path=app_config.get_queue_path(Path(output)),
    )
    pending = upload_queue.pending
    if pending:
        console.print(Panel(make_pending_table(pending), title=f"[bold]Pending uploads ({len(pending)})[/bold]"))
    else:
        console.print("[dim]No pending uploads[/dim]")
