"""Build pipeline: process runner, generator contract, dispatcher and supervisor."""
from __future__ import annotations

from .dispatcher import BuildDispatcher, JobReport, JobState, StageResult
from .generator import CommandGenerator, Generator, GeneratorFactory, command_generator_factory
from .process import ProcessResult, ProcessRunner
from .supervisor import SitePublisher, SiteSupervisor

__all__ = [
    "BuildDispatcher",
    "CommandGenerator",
    "Generator",
    "GeneratorFactory",
    "JobReport",
    "JobState",
    "ProcessResult",
    "ProcessRunner",
    "SitePublisher",
    "SiteSupervisor",
    "StageResult",
    "command_generator_factory",
]
