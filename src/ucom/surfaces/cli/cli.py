import logging

import typer

from .commands.build import register_build_commands
from .commands.cleanup import register_cleanup_commands
from .commands.editor import register_editor_commands
from .commands.open_project import register_open_commands
from .commands.run_tests import register_test_commands
from .commands.utils import get_ucom_version
from .commands.utils import raise_exit as _raise_exit
from .commands.utils import require_project as _require_project

logger = logging.getLogger("ucom.cli")

app = typer.Typer(add_completion=False)
editor_app = typer.Typer(add_completion=False)
cleanup_app = typer.Typer(add_completion=False)


def _version_callback(value: bool) -> None:
    if not value:
        return
    typer.echo(f"ucom {get_ucom_version()}")
    raise typer.Exit(code=0)


@app.callback()
def _root(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
) -> None:
    # Subcommands implement behavior; `--version` is handled eagerly.
    return


def main() -> None:
    """Entrypoint for CLI execution."""
    app()


register_build_commands(
    app,
    require_project=_require_project,
    raise_exit=_raise_exit,
)
register_open_commands(
    app,
    require_project=_require_project,
    raise_exit=_raise_exit,
)
register_test_commands(
    app,
    require_project=_require_project,
    raise_exit=_raise_exit,
)
app.add_typer(editor_app, name="editor")
register_editor_commands(
    editor_app,
    require_project=_require_project,
    raise_exit=_raise_exit,
)
app.add_typer(cleanup_app, name="cleanup")
register_cleanup_commands(
    cleanup_app,
    require_project=_require_project,
)


if __name__ == "__main__":  # pragma: no cover
    main()
