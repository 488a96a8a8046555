import json
from pathlib import Path

from sitepub.app.extensions import job_finished_hook
from sitepub.engine import JobReport, JobState, StageResult
from sitepub.errors import RegistryPersistError
from sitepub.models import SiteRegistration
from sitepub.registry import SiteRegistry


def _report(*, first_deploy: bool, state: JobState) -> JobReport:
    return JobReport(
        host_name="example.org",
        first_deploy=first_deploy,
        state=state,
        stages=[StageResult(JobState.MIRRORING, False, "exit status 23")],
        started_at=10.0,
        finished_at=12.5,
    )


def test_successful_first_deploy_saves_registry(tmp_path: Path, registration: SiteRegistration) -> None:
    target = tmp_path / "sites.json"
    hook = job_finished_hook(SiteRegistry(target, [registration]))

    hook(_report(first_deploy=True, state=JobState.ATTACHED))

    assert [entry["HostName"] for entry in json.loads(target.read_text(encoding="utf-8"))] == ["example.org"]


def test_rebuilds_and_aborted_jobs_do_not_save(tmp_path: Path, registration: SiteRegistration) -> None:
    target = tmp_path / "sites.json"
    hook = job_finished_hook(SiteRegistry(target, [registration]))

    hook(_report(first_deploy=False, state=JobState.ATTACHED))
    hook(_report(first_deploy=True, state=JobState.ABORTED))

    assert not target.exists()


class UnwritableRegistry(SiteRegistry):
    def persist(self) -> Path:
        raise RegistryPersistError("read-only filesystem")


def test_save_failure_is_logged_not_raised(tmp_path: Path) -> None:
    hook = job_finished_hook(UnwritableRegistry(tmp_path / "sites.json"))

    hook(_report(first_deploy=True, state=JobState.ATTACHED))
