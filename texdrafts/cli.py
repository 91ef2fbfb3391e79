"""CLI entrypoint for texdrafts."""

import sys
from pathlib import Path

import click

from . import __version__
from .config import CONFIG_FILENAME, BuildConfig, ConfigError, find_config
from .log import configure_logging


def _auto_detect_root(start: Path) -> Path:
    """Nearest directory at or above `start` holding a config file, else `start`."""
    cur = start.resolve()
    for p in (cur, *cur.parents):
        if (p / CONFIG_FILENAME).is_file():
            return p
    return cur


def _changed_paths(root: Path, paths: tuple[str, ...]) -> list[str]:
    """Changed files named on the command line.

    Run from inside the project, relative paths are taken from the current
    directory, as git does. From outside it they are relative to the root.
    """
    cwd = Path.cwd().resolve()
    if cwd == root or not cwd.is_relative_to(root):
        return list(paths)
    return [p if not p.strip() or Path(p).is_absolute() else str(cwd / p) for p in paths]


def _effective_config(ctx: click.Context, **overrides) -> BuildConfig:
    config: BuildConfig = ctx.obj["config"]
    extra_excludes = overrides.pop("exclude", ()) or ()
    extra_wordcount = overrides.pop("wordcount", ()) or ()
    if extra_excludes:
        overrides["exclude_files"] = [*config.exclude_files, *extra_excludes]
    if extra_wordcount:
        overrides["wordcount_files"] = [*config.wordcount_files, *extra_wordcount]
    try:
        return config.with_overrides(**overrides)
    except ConfigError as e:
        raise click.UsageError(str(e)) from e


def build_options(func):
    """Options shared by commands that compile."""
    options = [
        click.option("--compiler", default=None, help="Compiler command, e.g. pdflatex, xelatex, 'latexmk -pdf'"),
        click.option("--max-drafts", type=int, default=None, help="Drafts to keep per root (default 3)"),
        click.option(
            "--output-dir",
            type=click.Path(file_okay=False, path_type=Path),
            default=None,
            help="Drafts directory, relative to the root (default: drafts)",
        ),
        click.option("--biber/--no-biber", default=None, help="Run the bibliography pass for roots that use one"),
        click.option("--exclude", multiple=True, help="Document to leave out (repeatable, comma lists accepted)"),
        click.option("--wordcount", multiple=True, help="Document whose word-count macro to update (repeatable)"),
        click.option("--message", "commit_message", default=None, help="Commit message for --commit"),
        click.option("--jobs", "-j", type=int, default=None, help="Roots to compile in parallel"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@click.group()
@click.version_option(__version__, prog_name="texdrafts")
@click.option(
    "--root",
    "-r",
    type=click.Path(exists=False, file_okay=False, dir_okay=True, path_type=Path),
    default=None,
    help="Project root holding the .tex sources (defaults to the nearest directory with .texdrafts.yml)",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help=f"Configuration file (default: <root>/{CONFIG_FILENAME})",
)
@click.option("--verbose", "-V", is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx: click.Context, root: Path | None, config_path: Path | None, verbose: bool) -> None:
    """texdrafts - rebuild only the LaTeX documents a change affects.

    Scans the project for \\input/\\include edges, resolves changed files to
    the root documents that depend on them, compiles those, and keeps a
    bounded history of timestamped drafts per root.
    """
    ctx.ensure_object(dict)
    configure_logging(verbose=verbose)

    if root is None:
        root = _auto_detect_root(Path.cwd())

    if not root.exists() or not root.is_dir():
        raise click.BadParameter(f"Directory '{root}' does not exist.", param_hint="--root / -r")

    try:
        config = find_config(root, config_path)
    except ConfigError as e:
        raise click.ClickException(f"Invalid configuration: {e}") from e

    ctx.obj["root"] = root.resolve()
    ctx.obj["config"] = config


@cli.command()
@click.argument("paths", nargs=-1)
@click.option("--since", metavar="REV", default=None, help="Also treat files changed since REV (git) as changed")
@click.option("--all", "all_roots", is_flag=True, help="Every root, regardless of changes")
@click.option("--exclude", multiple=True, help="Document to leave out (repeatable)")
@click.option("--json", "output_json", is_flag=True, help="Output the build set as JSON")
@click.pass_context
def affected(
    ctx: click.Context,
    paths: tuple[str, ...],
    since: str | None,
    all_roots: bool,
    exclude: tuple[str, ...],
    output_json: bool,
) -> None:
    """List the roots that must be rebuilt for the given changed files.

    Examples:

        texdrafts affected chapters/intro.tex

        texdrafts affected --since HEAD~1 --json
    """
    from .commands.build_cmd import run_affected

    config = _effective_config(ctx, exclude=exclude)
    exit_code = run_affected(
        ctx.obj["root"],
        config,
        _changed_paths(ctx.obj["root"], paths),
        since=since,
        all_roots=all_roots,
        output_json=output_json,
    )
    sys.exit(exit_code)


@cli.command()
@click.argument("paths", nargs=-1)
@click.option("--since", metavar="REV", default=None, help="Also treat files changed since REV (git) as changed")
@click.option("--all", "all_roots", is_flag=True, help="Build every root, regardless of changes")
@click.option("--commit/--no-commit", default=False, help="Commit drafts and updated sources with git")
@click.option("--dry-run", is_flag=True, help="Show the build plan without compiling")
@build_options
@click.pass_context
def build(
    ctx: click.Context,
    paths: tuple[str, ...],
    since: str | None,
    all_roots: bool,
    commit: bool,
    dry_run: bool,
    compiler: str | None,
    max_drafts: int | None,
    output_dir: Path | None,
    biber: bool | None,
    exclude: tuple[str, ...],
    wordcount: tuple[str, ...],
    commit_message: str | None,
    jobs: int | None,
) -> None:
    """Compile the roots affected by the changed files and rotate their drafts.

    Examples:

        texdrafts build chapters/intro.tex

        texdrafts build --since origin/main --commit

        texdrafts build --all --compiler xelatex --max-drafts 5
    """
    from .commands.build_cmd import run_build

    config = _effective_config(
        ctx,
        compiler=compiler,
        max_drafts=max_drafts,
        output_dir=output_dir,
        biber=biber,
        exclude=exclude,
        wordcount=wordcount,
        commit_message=commit_message,
        jobs=jobs,
    )
    exit_code = run_build(
        ctx.obj["root"],
        config,
        _changed_paths(ctx.obj["root"], paths),
        since=since,
        all_roots=all_roots,
        commit=commit,
        dry_run=dry_run,
    )
    sys.exit(exit_code)


@cli.command()
@click.option("--max-drafts", type=int, default=None, help="Drafts to keep per root")
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Drafts directory",
)
@click.option("--json", "output_json", is_flag=True, help="Output results as JSON")
@click.pass_context
def prune(ctx: click.Context, max_drafts: int | None, output_dir: Path | None, output_json: bool) -> None:
    """Delete drafts beyond the retention limit without compiling."""
    from .commands.prune_cmd import run_prune

    config = _effective_config(ctx, max_drafts=max_drafts, output_dir=output_dir)
    sys.exit(run_prune(ctx.obj["root"], config, output_json=output_json))


@cli.command()
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["md", "json", "dot", "rich"]),
    default="md",
    help="Output format",
)
@click.option(
    "--out",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Output file path (default: stdout)",
)
@click.pass_context
def graph(ctx: click.Context, fmt: str, out: Path | None) -> None:
    """Show roots, inclusion edges, dangling references and cycles."""
    from .commands.graph_cmd import run_graph

    sys.exit(run_graph(ctx.obj["root"], ctx.obj["config"], fmt=fmt, out=out))


@cli.command()
@click.option("--commit/--no-commit", default=False, help="Commit drafts after each rebuild")
@build_options
@click.pass_context
def watch(
    ctx: click.Context,
    commit: bool,
    compiler: str | None,
    max_drafts: int | None,
    output_dir: Path | None,
    biber: bool | None,
    exclude: tuple[str, ...],
    wordcount: tuple[str, ...],
    commit_message: str | None,
    jobs: int | None,
) -> None:
    """Rebuild affected roots whenever a source file is saved."""
    from .commands.watch_cmd import run_watch

    config = _effective_config(
        ctx,
        compiler=compiler,
        max_drafts=max_drafts,
        output_dir=output_dir,
        biber=biber,
        exclude=exclude,
        wordcount=wordcount,
        commit_message=commit_message,
        jobs=jobs,
    )
    run_watch(ctx.obj["root"], config, commit=commit)


@cli.command("log")
@click.option("--last", "last_n", type=int, default=None, help="Only the last N runs")
@click.pass_context
def log_cmd(ctx: click.Context, last_n: int | None) -> None:
    """Show the build run log."""
    from .commands.watch_cmd import run_log

    run_log(ctx.obj["root"], last_n=last_n)


if __name__ == "__main__":
    cli()
