"""
Repobot CLI - Turn repository state into progress reports.

Commands:
    init      - Create repobot.yml in the current repository
    context   - Show the gathered repository context
    todos     - List checklist tasks from TODO files
    todo      - Mark a task done or not done
    docs      - List parsed documentation files
    report    - Generate a report, optionally sending it to Telegram
    config    - Show, read, update or validate configuration
"""

from __future__ import annotations

import asyncio
import functools
import json
import logging
import sys
from pathlib import Path

import click
import yaml
from dotenv import load_dotenv

from . import __version__
from .config import CONFIG_FILENAME, RepobotConfig, get_repo_root
from .context import gather_context
from .documents import DocumentIndex
from .errors import RepobotError
from .llm import get_llm_client
from .reports import REPORT_TEMPLATES, ReportGenerator
from .telegram import TelegramClient

logger = logging.getLogger("repobot.cli")


SAMPLE_CONFIG = """\
# Repobot Configuration

# AI provider used to write reports (via LiteLLM)
# API keys are read from environment (OPENAI_API_KEY, ANTHROPIC_API_KEY, etc.)
ai:
  enabled: true
  provider: openai
  model: gpt-4
  temperature: 0.3
  max_tokens: 1500

# Telegram delivery (or set TELEGRAM_BOT_TOKEN / TELEGRAM_CHAT_ID)
telegram:
  bot_token: null
  chat_id: null

# Report defaults; schedule is a cron expression for your scheduler
reporting:
  schedule: "0 9 * * 1-5"  # weekdays at 9 AM
  template: daily          # daily, weekly, monthly, custom

repository:
  # root: .               # defaults to the directory holding this file
  paths:
    todos:
      - "**/TODO.md"
      - "**/TODO"
    documentation:
      - "**/*.md"
  ignore:
    primary: .gitignore
    extra: []              # additional ignore files, e.g. [.repobotignore]
    require_primary: false
"""


def handle_errors(func):
    """Report Repobot errors on stderr and exit with their status code."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except RepobotError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(e.exit_code)
    return wrapper


def load_config() -> RepobotConfig:
    return RepobotConfig.load(get_repo_root())


def open_index(config: RepobotConfig) -> DocumentIndex:
    return asyncio.run(DocumentIndex.open(config))


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--log-level",
    default="WARNING",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging verbosity",
)
def main(log_level: str):
    """Repobot - Turn repository state into progress reports."""
    load_dotenv()
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@main.command()
@click.option("--force", is_flag=True, help="Overwrite existing configuration")
def init(force: bool):
    """Create repobot.yml in the current repository."""
    repo_root = get_repo_root()
    click.echo(f"Initializing Repobot in: {repo_root}")

    config_path = repo_root / CONFIG_FILENAME
    if not config_path.exists() or force:
        config_path.write_text(SAMPLE_CONFIG)
        click.echo(f"  Created: {config_path}")
    else:
        click.echo(f"  Skipped: {config_path} (already exists)")

    click.echo("\nRepobot initialized! Next steps:")
    click.echo("  1. Edit repobot.yml to choose an AI model and discovery paths")
    click.echo("  2. Set your provider API key (e.g. OPENAI_API_KEY)")
    click.echo("  3. Run: repobot report")


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.option("--no-git", is_flag=True, help="Skip git information")
@handle_errors
def context(as_json: bool, no_git: bool):
    """Show the gathered repository context."""
    config = load_config()

    async def _run():
        index = await DocumentIndex.open(config)
        return await gather_context(config, index, include_git=not no_git)

    ctx = asyncio.run(_run())

    if as_json:
        click.echo(json.dumps(ctx.to_dict(), indent=2))
        return

    click.echo(f"Repository: {config.get_repo_path()}")
    if ctx.git:
        state = "clean" if ctx.git.is_clean else "dirty"
        click.echo(f"  Branch: {ctx.git.current_branch} ({state})")
        click.echo(f"  Recent commits: {len(ctx.git.recent_commits)}")
    completed, total = ctx.task_totals
    click.echo(f"  TODO files: {len(ctx.todos)} ({completed}/{total} tasks done)")
    click.echo(f"  Documentation files: {len(ctx.documentation)}")


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.option("--pending", is_flag=True, help="Only show open tasks")
@handle_errors
def todos(as_json: bool, pending: bool):
    """List checklist tasks from TODO files."""
    config = load_config()
    index = open_index(config)
    checklists = asyncio.run(index.read_checklists(config.repository.paths.todos))

    if as_json:
        click.echo(json.dumps({path: doc.to_dict() for path, doc in checklists.items()}, indent=2))
        return

    if not checklists:
        click.echo("No TODO files found.")
        return

    for path, doc in checklists.items():
        click.echo(f"{path} ({doc.completed_count}/{len(doc.tasks)} done)")
        for section in doc.sections:
            tasks = [t for t in doc.tasks_in(section) if not (pending and t.completed)]
            if not tasks:
                continue
            click.echo(f"  {section}")
            for task in tasks:
                click.echo(f"    [{'x' if task.completed else ' '}] {task.description}")


@main.group()
def todo():
    """Update task completion in a TODO file."""
    pass


def _set_completion(path: str, text: str, completed: bool) -> None:
    config = load_config()
    index = open_index(config)
    count = asyncio.run(index.update_tasks(path, text, completed))
    if count:
        state = "done" if completed else "not done"
        click.echo(f"Marked {count} task(s) matching '{text}' as {state} in {path}")
    else:
        click.echo(f"No task matching '{text}' in {path}")


@todo.command("done")
@click.argument("path")
@click.argument("text")
@handle_errors
def todo_done(path: str, text: str):
    """Mark tasks in PATH containing TEXT as completed."""
    _set_completion(path, text, True)


@todo.command("undo")
@click.argument("path")
@click.argument("text")
@handle_errors
def todo_undo(path: str, text: str):
    """Mark tasks in PATH containing TEXT as not completed."""
    _set_completion(path, text, False)


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@handle_errors
def docs(as_json: bool):
    """List parsed documentation files."""
    config = load_config()
    index = open_index(config)
    documents = asyncio.run(index.read_documents(config.repository.paths.documentation))

    if as_json:
        click.echo(json.dumps({path: doc.to_dict() for path, doc in documents.items()}, indent=2))
        return

    if not documents:
        click.echo("No documentation files found.")
        return

    for path, doc in documents.items():
        title = doc.title or "(untitled)"
        click.echo(f"{path}: {title} - {len(doc.sections)} sections")


@main.command()
@click.argument("template", required=False, type=click.Choice(REPORT_TEMPLATES))
@click.option("--template-file", type=click.Path(dir_okay=False, path_type=Path), help="Jinja2 template for custom reports")
@click.option("--no-ai", is_flag=True, help="Skip the LLM and output the plain digest")
@click.option("--no-git", is_flag=True, help="Leave git information out of the report")
@click.option("--send", is_flag=True, help="Send the report to Telegram")
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), help="Write the report to a file")
@handle_errors
def report(
    template: str | None,
    template_file: Path | None,
    no_ai: bool,
    no_git: bool,
    send: bool,
    output: Path | None,
):
    """Generate a report (daily, weekly, monthly or custom).

    Examples:

        repobot report                       # configured default template
        repobot report weekly --send         # send to Telegram
        repobot report custom --template-file report.j2 --no-ai
    """
    config = load_config()
    template = template or config.reporting.template
    logger.info("Generating %s report", template)
    llm = None if no_ai else get_llm_client(config.ai)

    async def _run() -> str:
        index = await DocumentIndex.open(config)
        ctx = await gather_context(config, index, include_git=not no_git)
        return await ReportGenerator(llm).generate(template, ctx, template_file)

    text = asyncio.run(_run())

    if output:
        output.write_text(text, encoding="utf-8")
        click.echo(f"Report written to {output}")
    else:
        click.echo(text)

    if send:
        if not config.telegram.configured:
            click.echo("Telegram not configured. Report not sent.", err=True)
            sys.exit(1)
        client = TelegramClient(config.telegram.resolved_token, config.telegram.resolved_chat_id)
        count = client.send_message(text)
        click.echo(f"Report sent to Telegram ({count} message(s))")


@main.group("config")
def config_group():
    """Show, read, update or validate configuration."""
    pass


@config_group.command("show")
@handle_errors
def config_show():
    """Print the effective configuration as YAML."""
    config = load_config()
    click.echo(f"# {config.config_path}")
    click.echo(yaml.safe_dump(config.to_dict(), sort_keys=False).rstrip())


@config_group.command("get")
@click.argument("key")
@handle_errors
def config_get(key: str):
    """Print a value by dotted KEY, e.g. repository.paths.todos."""
    value = load_config().get_value(key)
    click.echo(json.dumps(value) if not isinstance(value, str) else value)


@config_group.command("set")
@click.argument("key")
@click.argument("value")
@handle_errors
def config_set(key: str, value: str):
    """Set dotted KEY to VALUE and save repobot.yml. Lists are comma-separated."""
    config = load_config()
    new_value = config.set_value(key, value)
    path = config.save()
    click.echo(f"Set {key} = {json.dumps(new_value)} in {path}")


@config_group.command("validate")
@handle_errors
def config_validate():
    """Check that repobot.yml loads and validates."""
    config = load_config()
    config.validate()
    click.echo(f"Configuration is valid: {config.config_path}")


if __name__ == "__main__":
    main()
