"""Main application entry point for VetScribe."""

import sys
import time
import asyncio
import argparse
import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.panel import Panel

from .analysis import format_analysis_text
from .audio import export_audio
from .config import ProviderSettings, VetScribeConfig
from .errors import VetScribeError
from .models.audio import AudioArtifact
from .models.pipeline import PipelineRun
from .notifications import Notification, Notifier, subscribe
from .pipeline import NullWakeLock, PipelineOrchestrator
from .storage import HistoryStore, export_to_file, import_file

logger = logging.getLogger(__name__)

_STYLES = {"info": "blue", "success": "green", "warning": "yellow", "error": "red"}


class App:

    def __init__(self, config_path: Optional[str], log_level: Optional[str] = None):
        self.console = Console()
        if config_path:
            self.config: Optional[VetScribeConfig] = VetScribeConfig(config_path)
            setup_logging(self.config, log_level or self.config.get('logging.level', 'INFO'))
            self.settings = self.config.provider_settings()
            history_path = self.config.get_history_path()
            history_limit = self.config.get_history_limit()
        else:
            self.config = None
            logging.basicConfig(level=getattr(logging, (log_level or 'WARNING').upper()))
            self.settings = ProviderSettings()
            history_path = str(Path('data') / 'history.json')
            history_limit = 50

        self.notifier = Notifier()
        subscribe(self.on_notification)
        self.history = HistoryStore(history_path, max_entries=history_limit, notifier=self.notifier)

    def on_notification(self, notification: Notification) -> None:
        self.console.print(notification.message, style=_STYLES.get(notification.level, ""))

    def orchestrator(self) -> PipelineOrchestrator:
        return PipelineOrchestrator(self.settings, wake_lock=NullWakeLock(),
                                    notifier=self.notifier, history=self.history)

    def show_run(self, run: PipelineRun) -> None:
        if run.transcript:
            self.console.print(Panel(run.transcript, title="Transcript"))
        if run.analysis is not None:
            self.console.print(Panel(format_analysis_text(run.analysis).rstrip(), title="Analysis"))

    async def _run_with_retry(self, orchestrator: PipelineOrchestrator, run: PipelineRun, retries: int) -> PipelineRun:
        while run.can_retry and retries > 0:
            retries -= 1
            run = await orchestrator.retry(run)
        return run

    def process(self, artifact: AudioArtifact, retries: int) -> int:
        orchestrator = self.orchestrator()

        async def go() -> PipelineRun:
            run = await orchestrator.run(artifact)
            return await self._run_with_retry(orchestrator, run, retries)

        run = asyncio.run(go())
        self.show_run(run)
        return 0 if run.succeeded else 1

    def process_url(self, url: str, retries: int) -> int:
        orchestrator = self.orchestrator()

        async def go() -> PipelineRun:
            run = await orchestrator.run_url(url)
            return await self._run_with_retry(orchestrator, run, retries)

        run = asyncio.run(go())
        self.show_run(run)
        return 0 if run.succeeded else 1

    def analyze(self, transcript: str, retries: int) -> int:
        orchestrator = self.orchestrator()

        async def go() -> PipelineRun:
            run = await orchestrator.analyze_transcript(transcript)
            return await self._run_with_retry(orchestrator, run, retries)

        run = asyncio.run(go())
        self.show_run(run)
        return 0 if run.succeeded else 1

    def record(self, duration: Optional[int], save_path: Optional[str], process: bool, retries: int) -> int:
        from .audio.capture import CaptureSession

        sample_rate = self.config.get('audio.sample_rate', 44100) if self.config else 44100
        channels = self.config.get('audio.channels', 1) if self.config else 1
        chunk_size = self.config.get('audio.chunk_size', 1024) if self.config else 1024

        with CaptureSession(sample_rate=sample_rate, channels=channels, chunk_size=chunk_size) as session:
            session.start()
            self.console.print("🎤 Recording... press Ctrl+C to stop", style="red")
            try:
                if duration:
                    time.sleep(duration)
                else:
                    while True:
                        time.sleep(1)
            except KeyboardInterrupt:
                pass
            artifact = session.stop()

        self.console.print(f"Recorded {session.elapsed_seconds:.1f}s ({artifact.size} bytes)")
        if save_path:
            Path(save_path).write_bytes(artifact.payload)
            self.console.print(f"Saved recording to {save_path}")
        if not process:
            return 0
        return self.process(artifact, retries)

    def convert(self, source: str, target: str) -> int:
        exported = export_audio(AudioArtifact.from_file(source))
        target_path = Path(target)
        if target_path.suffix.lstrip('.') != exported.extension:
            target_path = target_path.with_suffix(f".{exported.extension}")
        target_path.write_bytes(exported.payload)
        if exported.converted:
            self.console.print(f"Wrote WAV: {target_path}", style="green")
        else:
            self.notifier.warning(f"Could not decode {source}; saved original audio as {target_path}")
        return 0

    def history_command(self, action: str, entry_id: Optional[int]) -> int:
        if action == 'list':
            entries = self.history.list()
            if not entries:
                self.console.print("No history yet")
            for entry in entries:
                preview = entry.transcript[:80].replace("\n", " ")
                self.console.print(f"[bold]{entry.id}[/bold]  {entry.timestamp:%Y-%m-%d %H:%M}  {preview}")
            return 0
        if action == 'clear':
            self.history.clear()
            self.notifier.info("History cleared")
            return 0

        if entry_id is None:
            self.console.print(f"history {action} needs an entry id", style="red")
            return 2
        if action == 'show':
            entry = self.history.get(entry_id)
            if entry is None:
                self.console.print(f"No history entry {entry_id}", style="red")
                return 1
            self.console.print(Panel(entry.transcript, title=f"Transcript {entry.id}"))
            self.console.print(Panel(format_analysis_text(entry.analysis).rstrip(), title="Analysis"))
            return 0
        if self.history.delete(entry_id):
            self.notifier.info(f"Deleted history entry {entry_id}")
            return 0
        self.console.print(f"No history entry {entry_id}", style="red")
        return 1

    def export(self, entry_id: int, target: Optional[str]) -> int:
        entry = self.history.get(entry_id)
        if entry is None:
            self.console.print(f"No history entry {entry_id}", style="red")
            return 1
        path = export_to_file(target or '.', entry.transcript, entry.analysis)
        self.notifier.success(f"Exported to {path}")
        return 0

    def import_(self, source: str) -> int:
        result = import_file(source, self.history)
        if result.transcript:
            self.console.print(Panel(result.transcript, title="Transcript"))
        if result.analysis is not None:
            self.console.print(Panel(format_analysis_text(result.analysis).rstrip(), title="Analysis"))
        self.notifier.success("Import complete")
        return 0


def setup_logging(config: VetScribeConfig, level: str = "INFO") -> None:
    """Set up logging configuration from YAML config."""
    log_file_path = config.get('logging.file_path', 'data/logs/vetscribe.log')
    console_output = config.get('logging.console_output', True)

    log_dir = Path(log_file_path).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path, encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    ))
    handlers.append(file_handler)

    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.WARNING)
        console_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        handlers.append(console_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger.info("=" * 50)
    logger.info("VetScribe starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("=" * 50)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vetscribe",
        description="VetScribe - veterinary consultation transcription and analysis",
    )
    parser.add_argument("--config", type=str, help="Path to configuration YAML file (e.g. vetscribe.yaml)")
    parser.add_argument("--log-level", type=str, choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Set logging level (overrides config)")
    parser.add_argument("--retries", type=int, default=0,
                        help="Manual retries of a failed stage before giving up (default: 0)")
    parser.add_argument("--version", action="version", version="VetScribe v0.1.0")

    sub = parser.add_subparsers(dest="command", required=True)

    record = sub.add_parser("record", help="Record from the microphone, then transcribe and analyze")
    record.add_argument("--duration", type=int, help="Stop after this many seconds (default: until Ctrl+C)")
    record.add_argument("--save", type=str, help="Also write the recording to this WAV file")
    record.add_argument("--no-process", action="store_true", help="Only record; skip the pipeline")

    process = sub.add_parser("process", help="Transcribe and analyze an audio file")
    process.add_argument("file")

    url = sub.add_parser("url", help="Transcribe and analyze a video URL (Gemini only)")
    url.add_argument("url")

    analyze = sub.add_parser("analyze", help="Analyze an existing transcript text file")
    analyze.add_argument("file")

    convert = sub.add_parser("convert", help="Convert an audio file to 16-bit WAV")
    convert.add_argument("source")
    convert.add_argument("target")

    history = sub.add_parser("history", help="List, show, delete or clear saved analyses")
    history.add_argument("action", choices=["list", "show", "delete", "clear"])
    history.add_argument("id", type=int, nargs="?")

    export = sub.add_parser("export", help="Export a history entry as JSON")
    export.add_argument("id", type=int)
    export.add_argument("target", nargs="?", help="Output file or directory (default: current directory)")

    imp = sub.add_parser("import", help="Import an exported JSON document into history")
    imp.add_argument("file")

    return parser


def main(argv=None) -> None:
    """Main entry point for VetScribe."""
    args = build_parser().parse_args(argv)

    try:
        app = App(args.config, args.log_level)
        if args.command == "record":
            code = app.record(args.duration, args.save, not args.no_process, args.retries)
        elif args.command == "process":
            code = app.process(AudioArtifact.from_file(args.file), args.retries)
        elif args.command == "url":
            code = app.process_url(args.url, args.retries)
        elif args.command == "analyze":
            code = app.analyze(Path(args.file).read_text(encoding='utf-8'), args.retries)
        elif args.command == "convert":
            code = app.convert(args.source, args.target)
        elif args.command == "history":
            code = app.history_command(args.action, args.id)
        elif args.command == "export":
            code = app.export(args.id, args.target)
        else:
            code = app.import_(args.file)
    except KeyboardInterrupt:
        print("\n👋 Goodbye!")
        code = 130
    except (VetScribeError, ValueError, OSError) as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        logging.error(f"Application error: {e}")
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
