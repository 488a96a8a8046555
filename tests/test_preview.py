from pathlib import Path

from sitepub.preview import PreviewSite, SourceChangeHandler, create_preview_app
from watchdog.events import DirCreatedEvent, FileModifiedEvent


class CountingGenerator:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.renders = 0
        self.reloads = 0

    def set(self, key, value) -> None:
        return None

    def reload(self) -> None:
        self.reloads += 1

    def render(self) -> None:
        if self.fail:
            raise RuntimeError("broken layout")
        self.renders += 1


def _site(tmp_path: Path, generator: CountingGenerator) -> PreviewSite:
    source = tmp_path / "site"
    source.mkdir()
    return PreviewSite(source, source / "_site", lambda src, out: generator)


def test_build_reloads_and_counts(tmp_path: Path) -> None:
    generator = CountingGenerator()
    site = _site(tmp_path, generator)

    assert site.build()
    assert site.build(reload=False)

    assert generator.renders == 2
    assert generator.reloads == 1
    assert site.builds == 2


def test_failed_build_is_reported(tmp_path: Path) -> None:
    site = _site(tmp_path, CountingGenerator(fail=True))

    assert not site.build()
    assert site.builds == 0


def test_output_and_hidden_paths_are_not_relevant(tmp_path: Path) -> None:
    site = _site(tmp_path, CountingGenerator())

    assert site.is_relevant(site.source / "index.md")
    assert not site.is_relevant(site.output / "index.html")
    assert not site.is_relevant(site.source / ".git" / "HEAD")
    assert not site.is_relevant(tmp_path / "elsewhere.md")


def test_handler_rebuilds_on_relevant_file_events(tmp_path: Path) -> None:
    site = _site(tmp_path, CountingGenerator())
    rebuilds: list[int] = []
    handler = SourceChangeHandler(site, lambda: rebuilds.append(1))

    handler.on_any_event(FileModifiedEvent(str(site.source / "post.md")))
    handler.on_any_event(FileModifiedEvent(str(site.output / "post.html")))
    handler.on_any_event(DirCreatedEvent(str(site.source / "drafts")))

    assert len(rebuilds) == 1


def test_preview_app_serves_output(tmp_path: Path) -> None:
    output = tmp_path / "out"
    (output / "blog").mkdir(parents=True)
    (output / "index.html").write_text("<h1>home</h1>")
    (output / "blog" / "index.html").write_text("<h1>blog</h1>")
    client = create_preview_app(output).test_client()

    assert b"home" in client.get("/").data
    assert b"blog" in client.get("/blog").data
    assert client.get("/missing.html").status_code == 404
