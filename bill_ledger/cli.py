"""CLI for the ``bill_ledger`` package.

This module exposes callable command handlers (``cmd_import``,
``cmd_preview``, ``cmd_patterns``) and a Typer-based console interface.
Settings are loaded from a local ``.env`` using ``python-dotenv`` before
delegating to command logic. Business logic lives in ``bill_ledger.api``.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from typer.models import OptionInfo

from .config import Settings, load_mapping_config
from .ctv import CanonicalTransaction, format_amount
from .logging_setup import configure_logging
from .models import ConfigError, ParseError, UnknownPlatformError
from .normalizers import get_platform

# ---- Small module-level helpers used by CLI commands -------------------------


def _resolve_settings(data_dir: Path | None, config_dir: Path | None) -> Settings:
    env = Settings.from_env()
    return Settings(
        data_dir=data_dir if data_dir is not None else env.data_dir,
        config_dir=config_dir if config_dir is not None else env.config_dir,
        smart_category=env.smart_category,
    )


def _format_row(tx: CanonicalTransaction) -> str:
    when = tx.date.isoformat() if tx.date else "?"
    if tx.time is not None:
        when = f"{when} {tx.time.isoformat()}"
    target = f"→ {tx.transfer_account}" if tx.is_transfer else tx.category
    return "\t".join([when, tx.account, format_amount(tx.amount), target, tx.description])


def _print_summary(counts: dict[str, int]) -> None:
    print("分类统计:")
    for category, n in counts.items():
        print(f"  {category}: {n}")


# ---- Command handlers ---------------------------------------------------------


def cmd_import(
    file: Path,
    platform: str,
    *,
    smart: bool | None = None,
    interactive: bool = False,
    data_dir: Path | None = None,
    config_dir: Path | None = None,
) -> int:
    """Import one export file; return a process exit code."""

    # Deferred imports keep ``--help`` fast.
    from .api import import_bill
    from .resolvers import AutomaticResolver, InteractiveResolver

    try:
        profile = get_platform(platform)
    except UnknownPlatformError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    settings = _resolve_settings(data_dir, config_dir)
    use_smart = settings.smart_category if smart is None else smart
    if use_smart and interactive:
        print("Error: --interactive cannot be combined with --smart", file=sys.stderr)
        return 1

    try:
        config = load_mapping_config(settings.config_dir)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    resolver = InteractiveResolver() if interactive else AutomaticResolver()
    try:
        result = import_bill(
            file,
            profile.name,
            config=config,
            data_dir=settings.data_dir,
            smart=use_smart,
            resolver=resolver,
        )
    except FileNotFoundError:
        print(f"Error: File not found: {file}", file=sys.stderr)
        return 1
    except PermissionError:
        print(f"Error: Permission denied: {file}", file=sys.stderr)
        return 1
    except ParseError as e:
        print(f"Error: Failed to parse {profile.display_name} bill: {e}", file=sys.stderr)
        return 1

    print(f"导入 {len(result.transactions)} 条{profile.display_name}交易记录")
    for path in result.written_files:
        print(f"已写入 {path}")
    _print_summary(result.category_counts)
    return 0


def cmd_preview(
    file: Path,
    platform: str,
    *,
    smart: bool | None = None,
    data_dir: Path | None = None,
    config_dir: Path | None = None,
) -> int:
    """Print normalized rows for ``file`` without writing any ledger."""

    from .api import preview_bill, summarize_categories

    try:
        profile = get_platform(platform)
    except UnknownPlatformError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    settings = _resolve_settings(data_dir, config_dir)
    try:
        config = load_mapping_config(settings.config_dir)
        rows = preview_bill(
            file,
            profile.name,
            config=config,
            smart=settings.smart_category if smart is None else smart,
            data_dir=settings.data_dir,
        )
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except FileNotFoundError:
        print(f"Error: File not found: {file}", file=sys.stderr)
        return 1
    except ParseError as e:
        print(f"Error: Failed to parse {profile.display_name} bill: {e}", file=sys.stderr)
        return 1

    for tx in rows:
        print(_format_row(tx))
    _print_summary(summarize_categories(rows))
    return 0


def cmd_patterns(*, data_dir: Path | None = None) -> int:
    """Print the smart matcher's learned patterns, largest sample first."""

    from .api import pattern_stats

    settings = _resolve_settings(data_dir, None)
    stats = pattern_stats(settings.data_dir)
    if not stats:
        print(f"No learned patterns (no ledgers under {settings.data_dir})")
        return 0
    for s in stats:
        print(f"{s.category}\t{s.sample_count}\t{s.confidence:.2f}")
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Import Alipay/WeChat/JD/icost bill exports into monthly ledger CSVs. "
        "Loads BILL_LEDGER_* settings from a local .env before running."
    ),
)

# Module-level option objects to satisfy ruff B008 (no calls in parameter
# defaults). Inside ``Annotated`` the first positional is an option name, so
# optional values take their default from ``=`` at the parameter.
FILE_OPTION: OptionInfo = typer.Option(
    ...,
    "--file",
    "-f",
    help="Path to the exported bill (.csv or .xlsx)",
    dir_okay=False,
    file_okay=True,
    exists=False,  # the handler reports a friendly error instead
)
PLATFORM_OPTION: OptionInfo = typer.Option(
    ..., "--platform", "-p", help="Bill platform: alipay, wechat, jd or icost."
)
DATA_DIR_OPTION: OptionInfo = typer.Option(
    "--data-dir", help="Ledger root (falls back to BILL_LEDGER_DATA_DIR, then ./data)."
)
CONFIG_DIR_OPTION: OptionInfo = typer.Option(
    "--config-dir",
    help="Directory with account_map.json and category_map.json (falls back to BILL_LEDGER_CONFIG_DIR).",
)
SMART_OPTION: OptionInfo = typer.Option(
    "--smart/--no-smart",
    help="Use the matcher learned from existing ledgers (default from BILL_LEDGER_SMART_CATEGORY).",
)
LOG_LEVEL_OPTION: OptionInfo = typer.Option(
    "--log-level", help="Logging level name or number (falls back to BILL_LEDGER_LOG_LEVEL, then INFO)."
)


@app.command("import")
def import_cmd(
    file: Annotated[Path, FILE_OPTION],
    platform: Annotated[str, PLATFORM_OPTION],
    *,
    smart: Annotated[bool | None, SMART_OPTION] = None,
    interactive: bool = typer.Option(
        False, help="Ask for a category for every row left as 其他 (rule-based matching only)."
    ),
    data_dir: Annotated[Path | None, DATA_DIR_OPTION] = None,
    config_dir: Annotated[Path | None, CONFIG_DIR_OPTION] = None,
) -> None:
    """Import a bill export and merge it into the month ledgers."""

    code = cmd_import(
        file,
        platform,
        smart=smart,
        interactive=interactive,
        data_dir=data_dir,
        config_dir=config_dir,
    )
    if code:
        raise typer.Exit(code)


@app.command("preview")
def preview_cmd(
    file: Annotated[Path, FILE_OPTION],
    platform: Annotated[str, PLATFORM_OPTION],
    *,
    smart: Annotated[bool | None, SMART_OPTION] = None,
    data_dir: Annotated[Path | None, DATA_DIR_OPTION] = None,
    config_dir: Annotated[Path | None, CONFIG_DIR_OPTION] = None,
) -> None:
    """Show normalized rows without writing anything."""

    code = cmd_preview(file, platform, smart=smart, data_dir=data_dir, config_dir=config_dir)
    if code:
        raise typer.Exit(code)


@app.command("patterns")
def patterns_cmd(data_dir: Annotated[Path | None, DATA_DIR_OPTION] = None) -> None:
    """List learned category patterns: category, samples, confidence."""

    code = cmd_patterns(data_dir=data_dir)
    if code:
        raise typer.Exit(code)


@app.callback(invoke_without_command=True)
def _root(
    ctx: typer.Context,
    log_level: Annotated[str | None, LOG_LEVEL_OPTION] = None,
) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures logging.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)

    # Central logging setup so child loggers inherit configuration
    try:
        configure_logging(log_level)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--log-level") from e

    if ctx.invoked_subcommand is None:
        typer.echo("No subcommand provided. Use --help to see available commands.")
        raise typer.Exit(1)


if __name__ == "__main__":  # pragma: no cover
    # Running as a module: `python -m bill_ledger.cli`
    app()
