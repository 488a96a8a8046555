"""Global build queue and its single consumer."""
from __future__ import annotations

import enum
import logging
import queue
import threading
import time
from dataclasses import dataclass, field, replace
from pathlib import Path
from threading import Event
from typing import Callable, Optional

from ..models import SitePaths, SiteRegistration, site_paths
from ..utils import HandoffQueue
from .generator import GeneratorFactory
from .process import ProcessResult, ProcessRunner
from .supervisor import SiteSupervisor

LOGGER = logging.getLogger(__name__)


class JobState(str, enum.Enum):
    IDLE = "idle"
    QUEUED = "queued"
    SYNCING = "syncing"
    RENDERING = "rendering"
    MIRRORING = "mirroring"
    SEEDING = "seeding"
    ATTACHED = "attached"
    ABORTED = "aborted"


@dataclass(frozen=True)
class StageResult:
    """Outcome of one pipeline stage."""

    stage: JobState
    ok: bool
    detail: str = ""

    @classmethod
    def from_process(cls, stage: JobState, result: ProcessResult) -> "StageResult":
        return cls(stage=stage, ok=result.ok, detail=result.describe())


@dataclass
class JobReport:
    """What happened to one build job."""

    host_name: str
    first_deploy: bool
    state: JobState = JobState.QUEUED
    stages: list[StageResult] = field(default_factory=list)
    started_at: float = 0.0
    finished_at: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.state == JobState.ATTACHED


class BuildDispatcher:
    """Run site builds one at a time, in the order they were submitted.

    ``submit`` is an unbuffered handoff: it returns only once the dispatcher
    thread has picked the job up, so a slow build holds back every caller.
    """

    def __init__(
        self,
        *,
        base_dir: Path,
        runner: ProcessRunner,
        generator_factory: GeneratorFactory,
        supervisor: SiteSupervisor,
        abort_on_sync_failure: bool = False,
        after_job: Optional[Callable[[JobReport], None]] = None,
        stop_event: Optional[Event] = None,
    ) -> None:
        self.base_dir = Path(base_dir)
        self.runner = runner
        self.supervisor = supervisor
        self.abort_on_sync_failure = abort_on_sync_failure
        self.stop_event = stop_event or Event()
        self._generator_factory = generator_factory
        self._after_job = after_job
        self._queue: HandoffQueue[SiteRegistration] = HandoffQueue()
        self._lock = threading.Lock()
        self._state = JobState.IDLE
        self._active_host: Optional[str] = None
        self._last_report: Optional[JobReport] = None
        self._thread: Optional[threading.Thread] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="build-dispatcher", daemon=True)
        self._thread.start()
        LOGGER.info("Build dispatcher started")

    def shutdown(self, timeout: float = 5.0) -> None:
        self.stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        self.supervisor.shutdown()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def submit(self, registration: SiteRegistration) -> bool:
        """Queue a build of a frozen copy of ``registration``."""

        job = replace(registration)
        LOGGER.info("[%s] Build queued", job.host_name)
        return self._queue.put(job, stop_event=self.stop_event)

    def status(self) -> dict[str, object]:
        with self._lock:
            report = self._last_report
            payload: dict[str, object] = {
                "state": self._state.value,
                "active_host": self._active_host,
                "waiting": self._queue.waiting(),
            }
        if report is not None:
            payload["last_job"] = {
                "host_name": report.host_name,
                "state": report.state.value,
                "stages": [
                    {"stage": stage.stage.value, "ok": stage.ok, "detail": stage.detail}
                    for stage in report.stages
                ],
            }
        return payload

    @property
    def state(self) -> JobState:
        with self._lock:
            return self._state

    def run_job(self, job: SiteRegistration) -> JobReport:
        """Execute the pipeline for one job on the calling thread."""

        paths = site_paths(self.base_dir, job.host_name)
        report = JobReport(host_name=job.host_name, first_deploy=job.needs_deployment, started_at=time.time())
        LOGGER.info("[%s] Starting build for %s", job.host_name, job.name or job.host_name)
        LOGGER.info("[%s] Rendering into %s, mirroring into %s", job.host_name, paths.rendered, paths.live)
        try:
            self._execute(job, paths, report)
        finally:
            report.finished_at = time.time()
            self._set_state(JobState.IDLE, None)
            with self._lock:
                self._last_report = report
        return report

    # ------------------------------------------------------------------
    # Pipeline stages
    # ------------------------------------------------------------------
    def _execute(self, job: SiteRegistration, paths: SitePaths, report: JobReport) -> None:
        host = job.host_name

        self._enter(report, JobState.SYNCING)
        sync = self._sync_source(job, paths)
        self._record(report, sync)
        if not sync.ok and self.abort_on_sync_failure:
            self._abort(report, "source sync failed")
            return

        self._enter(report, JobState.RENDERING)
        render = self._render(job, paths)
        self._record(report, render)
        if not render.ok:
            LOGGER.error(
                "[%s] Error on site %s while trying to generate static content: %s. "
                "Site stays on its previous output until the next build.",
                host,
                job.name,
                render.detail,
            )
            self._abort(report, "render failed")
            return

        self._enter(report, JobState.MIRRORING)
        self._record(report, self._mirror(paths))

        if job.needs_deployment:
            self._enter(report, JobState.SEEDING)

        publisher = self.supervisor.ensure(job, seed=job.needs_deployment)
        self._record(
            report,
            StageResult(
                stage=JobState.ATTACHED,
                ok=publisher is not None,
                detail="publisher running" if publisher is not None else "publisher unavailable",
            ),
        )
        self._enter(report, JobState.ATTACHED)

    def _sync_source(self, job: SiteRegistration, paths: SitePaths) -> StageResult:
        if job.needs_deployment:
            LOGGER.info("[%s] Cloning %s", job.host_name, job.clone_url)
            try:
                paths.source.parent.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                return StageResult(JobState.SYNCING, False, f"mkdir failed: {exc}")
            result = self.runner.run("git", ["clone", job.clone_url, str(paths.source)])
        else:
            LOGGER.info("[%s] Pulling latest source", job.host_name)
            result = self.runner.run(
                "git",
                [f"--git-dir={paths.source / '.git'}", f"--work-tree={paths.source}", "pull"],
            )
        return StageResult.from_process(JobState.SYNCING, result)

    def _render(self, job: SiteRegistration, paths: SitePaths) -> StageResult:
        LOGGER.info("[%s] Generating static site...", job.host_name)
        try:
            generator = self._generator_factory(paths.source, paths.rendered)
            if job.base_url:
                generator.set("baseurl", job.base_url)
            generator.render()
        except Exception as exc:
            return StageResult(JobState.RENDERING, False, str(exc) or exc.__class__.__name__)
        return StageResult(JobState.RENDERING, True, "rendered")

    def _mirror(self, paths: SitePaths) -> StageResult:
        try:
            paths.live.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            return StageResult(JobState.MIRRORING, False, f"mkdir failed: {exc}")
        # The trailing slash copies the contents rather than the directory.
        result = self.runner.run(
            "rsync",
            ["--delete", "--size-only", "--recursive", f"{paths.rendered}/", str(paths.live)],
        )
        return StageResult.from_process(JobState.MIRRORING, result)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _run(self) -> None:
        while not self.stop_event.is_set():
            LOGGER.debug("Waiting for the next build job")
            try:
                job = self._queue.get(timeout=0.5)
            except queue.Empty:
                continue
            self._set_state(JobState.QUEUED, job.host_name)
            try:
                report = self.run_job(job)
            except Exception:
                LOGGER.exception("[%s] Build job crashed", job.host_name)
                continue
            self._notify(report)
        LOGGER.info("Build dispatcher stopped")

    def _notify(self, report: JobReport) -> None:
        if self._after_job is None:
            return
        try:
            self._after_job(report)
        except Exception:
            LOGGER.exception("[%s] after-job hook failed", report.host_name)

    def _enter(self, report: JobReport, state: JobState) -> None:
        report.state = state
        self._set_state(state, report.host_name)
        LOGGER.info("[%s] %s started", report.host_name, state.value)

    def _record(self, report: JobReport, result: StageResult) -> None:
        report.stages.append(result)
        outcome = "succeeded" if result.ok else "failed"
        log = LOGGER.info if result.ok else LOGGER.warning
        log("[%s] %s %s (%s)", report.host_name, result.stage.value, outcome, result.detail)

    def _abort(self, report: JobReport, reason: str) -> None:
        report.state = JobState.ABORTED
        LOGGER.warning("[%s] Job abandoned: %s", report.host_name, reason)

    def _set_state(self, state: JobState, host: Optional[str]) -> None:
        with self._lock:
            self._state = state
            self._active_host = host


__all__ = ["BuildDispatcher", "JobReport", "JobState", "StageResult"]
