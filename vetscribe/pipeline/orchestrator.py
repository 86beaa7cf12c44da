"""Two-stage pipeline: transcribe, then analyze, then normalize."""

import logging
from datetime import datetime
from typing import Awaitable, Callable, Optional

from ..analysis.normalizer import normalize_analysis
from ..config import ProviderSettings
from ..errors import ConfigurationError, HistoryWriteError, PipelineBusyError, ProviderError, VetScribeError
from ..models.audio import AudioArtifact
from ..models.pipeline import JobStatus, PipelineRun, PipelineStage, TranscriptionJob
from ..notifications import Notifier
from ..providers import ProviderAdapter, resolve_provider
from ..storage.history import HistoryStore
from .wake_lock import WakeLock, WakeLockGuard

logger = logging.getLogger(__name__)


class PipelineOrchestrator:
    """Runs one submission at a time through a provider adapter.

    Failures of either stage come back as a FAILED PipelineRun; pass it to
    retry() to re-run the failed stage with the same input.
    """

    def __init__(self,
                 settings: ProviderSettings,
                 adapter: Optional[ProviderAdapter] = None,
                 wake_lock: Optional[WakeLock] = None,
                 notifier: Optional[Notifier] = None,
                 history: Optional[HistoryStore] = None):
        """Initialize pipeline orchestrator.

        Args:
            settings: Immutable provider settings for this run
            adapter: Provider adapter; resolved from settings if omitted
            wake_lock: Optional platform wake-lock
            notifier: Destination for user-visible messages
            history: Store receiving completed runs
        """
        self.settings = settings
        self.notifier = notifier or Notifier()
        self.adapter = adapter or resolve_provider(settings, on_retry=self.notifier.warning)
        self.wake_lock = wake_lock
        self.history = history
        self._busy = False

    @property
    def is_busy(self) -> bool:
        return self._busy

    async def run(self, artifact: AudioArtifact) -> PipelineRun:
        """Transcribe and analyze an audio artifact."""
        job = TranscriptionJob(provider_id=self.adapter.name, artifact=artifact)
        return await self._execute(job, lambda: self.adapter.transcribe(artifact, progress=job.update))

    async def run_url(self, url: str) -> PipelineRun:
        """Transcribe and analyze a remote video. Gemini only."""
        transcribe_url = getattr(self.adapter, "transcribe_url", None)
        if transcribe_url is None:
            raise ConfigurationError(f"URL analysis is not supported by the {self.adapter.name} provider")
        job = TranscriptionJob(provider_id=self.adapter.name, source_url=url)
        return await self._execute(job, lambda: transcribe_url(url, progress=job.update))

    async def analyze_transcript(self, transcript: str) -> PipelineRun:
        """Run only the analysis stage on an existing transcript."""
        job = TranscriptionJob(provider_id=self.adapter.name, status=JobStatus.DONE, transcript=transcript)
        return await self._execute(job, None, transcript=transcript)

    async def retry(self, run: PipelineRun) -> PipelineRun:
        """Re-run the failed stage with the identical input."""
        if not run.can_retry:
            raise ValueError(f"Run in stage {run.stage.value} cannot be retried")

        if run.failed_stage is PipelineStage.ANALYZING:
            logger.info("Retrying analysis stage")
            return await self._execute(run.job, None, transcript=run.transcript)

        logger.info("Retrying transcription stage")
        if run.job.source_url is not None:
            return await self.run_url(run.job.source_url)
        return await self.run(run.job.artifact)

    async def _execute(self,
                       job: TranscriptionJob,
                       transcribe: Optional[Callable[[], Awaitable[str]]],
                       transcript: Optional[str] = None) -> PipelineRun:
        self.adapter.ensure_configured()
        if self._busy:
            raise PipelineBusyError("A pipeline run is already in progress")

        self._busy = True
        run = PipelineRun(
            stage=PipelineStage.TRANSCRIBING if transcribe else PipelineStage.ANALYZING,
            job=job,
            transcript=transcript,
        )
        try:
            async with WakeLockGuard(self.wake_lock):
                if transcribe is not None:
                    if not await self._transcribe(run, transcribe):
                        return run
                await self._analyze(run)
                return run
        finally:
            self._busy = False
            run.finished_at = datetime.now()

    async def _transcribe(self, run: PipelineRun, transcribe: Callable[[], Awaitable[str]]) -> bool:
        job = run.job
        job.update(JobStatus.PENDING)
        try:
            text = await transcribe()
            if not text or not text.strip():
                raise ProviderError("No speech was transcribed", provider=self.adapter.name)
        except VetScribeError as e:
            job.error = e
            job.update(JobStatus.FAILED)
            self._fail(run, PipelineStage.TRANSCRIBING, e)
            return False

        job.transcript = text
        job.update(JobStatus.DONE)
        run.transcript = text
        self.notifier.success("Transcript ready")
        logger.info(f"Transcription complete: {len(text)} characters")
        return True

    async def _analyze(self, run: PipelineRun) -> None:
        run.stage = PipelineStage.ANALYZING
        try:
            raw = await self.adapter.analyze(run.transcript)
        except VetScribeError as e:
            self._fail(run, PipelineStage.ANALYZING, e)
            return

        run.raw_analysis = raw
        run.analysis = normalize_analysis(raw)
        run.stage = PipelineStage.COMPLETE
        run.error = None
        run.failed_stage = None
        self.notifier.success("Analysis complete")
        self._persist(run)

    def _fail(self, run: PipelineRun, stage: PipelineStage, error: VetScribeError) -> None:
        run.stage = PipelineStage.FAILED
        run.failed_stage = stage
        run.error = error
        label = "Transcription" if stage is PipelineStage.TRANSCRIBING else "Analysis"
        logger.error(f"{label} failed: {error}")
        self.notifier.error(f"{label} failed: {error} (retry available)")

    def _persist(self, run: PipelineRun) -> None:
        if self.history is None:
            return
        try:
            self.history.append(run.transcript, run.analysis)
        except HistoryWriteError as e:
            logger.error(f"Could not save run to history: {e}")
            self.notifier.error(f"Could not save to history: {e}")
