from __future__ import annotations

import argparse
import logging
import os
from typing import Optional

from .context import SetupContext
from .errors import SetupError
from .lib.osinfo import is_supported, read_os_release
from .lib.prompt import confirm, stdin_is_interactive
from .lib.remote import RemoteAssets, selected_branch
from .logging_utils import DEFAULT_LOG_PATH, configure_logging
from .orchestrator import Orchestrator, log_report, select_steps
from .selection import choose_steps, confirm_selection
from .setup_config import CONFIG_ENV, load_setup_config
from .steps import build_steps
from .summary import collect_versions, log_versions

logger = logging.getLogger(__name__)


def list_steps(steps) -> str:
    lines = []
    for i, s in enumerate(steps):
        kind = "required" if s.critical else "optional"
        asked = f"prompt (default {'yes' if s.prompt_default else 'no'})" if s.prompt else ""
        lines.append(f"{i:>2}  {s.step_id:<18} {kind:<9} {asked:<22} {s.title}".rstrip())
    return "\n".join(lines)


def check_os(assume_yes: bool) -> bool:
    info = read_os_release()
    if is_supported(info):
        return True
    logger.warning("This tool is optimized for Zorin OS (Ubuntu-based).")
    logger.warning("Detected: %s", info.get("PRETTY_NAME") or info.get("NAME") or "unknown")
    if assume_yes:
        logger.warning("Continuing anyway (--yes)")
        return True
    return confirm("Continue anyway?", False)


def run(
    *,
    config_path: Optional[str] = None,
    log_path: str = DEFAULT_LOG_PATH,
    only=None,
    skip=None,
    assume_yes: bool = False,
    dry_run: bool = False,
    preselected: bool = False,
) -> int:
    """One full setup run. Returns the process exit code.

    preselected: the user already picked steps from the menu, so prompted
    steps are not asked about again.
    """

    actual_log_path = configure_logging(log_path=log_path)
    logger.debug("Log file: %s", actual_log_path)

    config = load_setup_config(config_path)
    steps = build_steps()
    if not check_os(assume_yes):
        logger.error("Aborted: unsupported OS")
        return 1

    ctx = SetupContext(config=config, dry_run=dry_run, assume_yes=assume_yes)
    remote: Optional[RemoteAssets] = None
    try:
        branch = selected_branch()
        if branch:
            remote = RemoteAssets(branch, downloader=ctx.downloader, home=ctx.home, base_url=config.remote_base_url)
            try:
                ctx.assets_dir = remote.fetch()
            except SetupError as e:
                logger.error("%s", e)
                if e.hint:
                    logger.info("%s", e.hint)
                return 1

        if dry_run:
            logger.info("Dry run: commands are logged, not executed")

        answer = (lambda question, default: True) if preselected else None
        report = Orchestrator(ctx, steps, confirm=answer).run(only=only, skip=skip)
        log_report(report, steps)

        if not dry_run and report.results:
            log_versions(collect_versions())
        if config.user_name:
            logger.info(
                'Set your git identity with: git config --global user.name "%s"%s',
                config.user_name,
                f' && git config --global user.email "{config.user_email}"' if config.user_email else "",
            )
        if report.ok:
            logger.info("Log out and back in to pick up the new shell and group memberships")
        return 0 if report.ok else 1
    finally:
        if remote is not None:
            logger.info("Cleaning up temporary files...")
            remote.cleanup()
        ctx.close()


def main(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="dotfiles-setup", description="Set up a Zorin OS / Ubuntu development desktop")
    p.add_argument(
        "--config",
        default=os.environ.get(CONFIG_ENV),
        help=f"Path to setup config (yaml); defaults to ${CONFIG_ENV}",
    )
    p.add_argument("--log", default=DEFAULT_LOG_PATH, help="Path to setup log")
    p.add_argument("--only", action="append", default=[], metavar="STEP", help="Run only this step (repeatable)")
    p.add_argument("--skip", action="append", default=[], metavar="STEP", help="Skip this step (repeatable)")
    p.add_argument("--yes", "-y", action="store_true", help="Answer every prompt with its default")
    p.add_argument("--dry-run", action="store_true", help="Log commands without executing them")
    p.add_argument("--list", action="store_true", help="List the steps and exit")
    p.add_argument("--clear-cache", action="store_true", help="Remove cached downloads and exit")

    args = p.parse_args(argv)

    steps = build_steps()
    try:
        select_steps(steps, args.only, args.skip)
    except ValueError as e:
        p.error(str(e))

    if args.list:
        print(list_steps(steps))
        return 0

    if args.clear_cache:
        configure_logging(log_path=args.log)
        ctx = SetupContext(config=load_setup_config(args.config))
        try:
            ctx.downloader.clear_cache()
        finally:
            ctx.close()
        return 0

    only = args.only
    preselected = False
    if not (args.only or args.skip or args.yes) and stdin_is_interactive():
        chosen = choose_steps(steps)
        if chosen is None or not confirm_selection(steps, chosen):
            print("Installation cancelled by user.")
            return 0
        only = sorted(chosen)
        preselected = True

    return run(
        config_path=args.config,
        log_path=args.log,
        only=only,
        skip=args.skip,
        assume_yes=args.yes,
        dry_run=args.dry_run,
        preselected=preselected,
    )
