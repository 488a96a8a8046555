from sitepub.cli import parse_args


def test_serve_is_the_default_command() -> None:
    args = parse_args(["--port", "8000"])

    assert args.command == "serve"
    assert args.port == 8000
    assert args.sites is None


def test_preview_arguments() -> None:
    args = parse_args(["preview", "site", "--port", "4000"])

    assert args.command == "preview"
    assert args.source == "site"
    assert args.port == 4000
    assert args.generator == "jekyll build"
