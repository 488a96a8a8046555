"""Site generator contract and the default command-line implementation."""
from __future__ import annotations

import logging
import shlex
from pathlib import Path
from typing import Any, Callable, Optional, Protocol, Sequence

from ..errors import GeneratorError
from .process import ProcessRunner

LOGGER = logging.getLogger(__name__)


class Generator(Protocol):
    """Renders a source tree into an output directory."""

    def set(self, key: str, value: Any) -> None: ...

    def reload(self) -> None: ...

    def render(self) -> None: ...


GeneratorFactory = Callable[[Path, Path], Generator]


class CommandGenerator:
    """Drive an external static-site generator such as ``jekyll build``.

    Configuration overrides are passed as ``--<key> <value>`` arguments.
    """

    def __init__(
        self,
        source: Path,
        destination: Path,
        *,
        command: Sequence[str],
        runner: ProcessRunner,
        timeout: Optional[float] = None,
    ) -> None:
        if not command:
            raise GeneratorError("Generator command cannot be empty")
        self.source = Path(source)
        self.destination = Path(destination)
        self._command = list(command)
        self._runner = runner
        self._timeout = timeout
        self._overrides: dict[str, str] = {}
        self.reload()

    def set(self, key: str, value: Any) -> None:
        self._overrides[key] = str(value)

    def reload(self) -> None:
        if not self.source.is_dir():
            raise GeneratorError(f"Source directory {self.source} does not exist")

    def render(self) -> None:
        self.reload()
        try:
            self.destination.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise GeneratorError(f"Unable to create {self.destination}: {exc}") from exc

        args = [
            *self._command[1:],
            "--source",
            str(self.source),
            "--destination",
            str(self.destination),
        ]
        for key, value in self._overrides.items():
            args.extend([f"--{key}", value])

        result = self._runner.run(self._command[0], args, timeout=self._timeout, cwd=self.source)
        if not result.ok:
            raise GeneratorError(f"{self._command[0]} {result.describe()}")


def command_generator_factory(
    command_line: str,
    *,
    runner: ProcessRunner,
    timeout: Optional[float] = None,
) -> GeneratorFactory:
    """Return a factory building :class:`CommandGenerator` instances."""

    command = shlex.split(command_line)

    def _factory(source: Path, destination: Path) -> Generator:
        return CommandGenerator(
            source,
            destination,
            command=command,
            runner=runner,
            timeout=timeout,
        )

    return _factory


__all__ = ["CommandGenerator", "Generator", "GeneratorFactory", "command_generator_factory"]
