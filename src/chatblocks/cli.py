"""CLI entry point for chatblocks."""

import asyncio
import json
from pathlib import Path
from typing import Optional

import click
import yaml
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from chatblocks import __version__
from chatblocks.config import DEFAULT_CONFIG_PATH, ConfigManager
from chatblocks.document.parser import describe_block, find_headings
from chatblocks.llm.client import LLMService
from chatblocks.models.block import BlockState, BlockType
from chatblocks.processing.engine import apply_rule
from chatblocks.processing.presets import (
    THINKING_CHAIN_PURPOSE,
    get_rule_by_id,
    get_rules_by_purpose,
    load_all_rules,
    template_rules,
)
from chatblocks.processing.thinking import extract_thinking
from chatblocks.services.conversation import ChatSession
from chatblocks.services.exceptions import ChatBlocksError
from chatblocks.utils.logging import configure_logging, get_logger


logger = get_logger(__name__)
console = Console()

BLOCK_TYPES = {
    "system": BlockType.SYSTEM,
    "user": BlockType.USER,
    "assistant": BlockType.ASSISTANT,
    "note": BlockType.NOTE,
}

STATES = {
    "active": BlockState.ACTIVE,
    "inactive": BlockState.INACTIVE,
}

DOCUMENT = click.argument("document", type=click.Path(exists=True, dir_okay=False, path_type=Path))


def load_config(path: Optional[Path], required: bool = True) -> Optional[ConfigManager]:
    """
    Load configuration from path (or ~/.config/chatblocks/config.yaml).

    Args:
        path: Explicit config path from --config
        required: If False, a missing default config yields None

    Raises:
        click.ClickException: If config is missing, has invalid permissions, or validation fails
    """
    config_path = path or DEFAULT_CONFIG_PATH
    if not required and path is None and not config_path.exists():
        return None

    try:
        return ConfigManager.load_from_path(config_path)
    except (FileNotFoundError, PermissionError, ValueError) as e:
        raise click.ClickException(str(e))


def open_session(document: Path, config: Optional[ConfigManager] = None) -> ChatSession:
    if config is None:
        return ChatSession.open(document)
    try:
        return ChatSession.open(document, rules=config.rules, thinking_rules=config.thinking_rules)
    except ValueError as e:
        raise click.ClickException(str(e))


def save_session(session: ChatSession) -> None:
    if not session.document.is_dirty:
        return
    try:
        session.document.save()
    except ChatBlocksError as e:
        raise click.ClickException(str(e))


@click.group()
@click.version_option(version=__version__, prog_name="chatblocks")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to configuration file (default: ~/.config/chatblocks/config.yaml)",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path]):
    """chatblocks: manage tagged conversation blocks in plain-text chat documents."""
    configure_logging()
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


@cli.command()
@DOCUMENT
def blocks(document: Path):
    """List the blocks in a chat document."""
    session = open_session(document)

    table = Table(title=str(document))
    table.add_column("ID", no_wrap=True)
    table.add_column("Type")
    table.add_column("State")
    table.add_column("Name")
    table.add_column("Model")
    table.add_column("Content")

    for block in session.blocks():
        table.add_row(
            escape(block.id),
            block.type.name.lower(),
            "active" if block.is_active else "inactive",
            escape(block.name or ""),
            escape(block.model_alias or ""),
            escape(block.content[:40].replace("\n", " ")),
        )
    console.print(table)


@cli.command()
@DOCUMENT
def outline(document: Path):
    """Show headings and blocks in document order."""
    session = open_session(document)
    entries = []
    for heading in find_headings(session.document.text):
        entries.append((heading.line, f"{'#' * heading.level} {heading.text}"))
    for block in session.blocks():
        line = session.document.position_at(block.span.start).line
        marker = "●" if block.is_active else "○"
        entries.append((line, f"  {marker} {describe_block(block)}"))

    for line, label in sorted(entries, key=lambda entry: entry[0]):
        click.echo(f"{line + 1:>5}  {label}")


@cli.command()
@DOCUMENT
def context(document: Path):
    """Print the context assembled from the active blocks."""
    session = open_session(document)
    click.echo(session.context())


@cli.command()
@DOCUMENT
@click.argument("block_id")
def toggle(document: Path, block_id: str):
    """Flip a block between active and inactive."""
    session = open_session(document)
    try:
        if not session.toggle_block(block_id):
            raise click.ClickException(f"Could not update block {block_id}")
    except ChatBlocksError as e:
        raise click.ClickException(str(e))
    save_session(session)

    state = session.state.get_block_state(block_id)
    click.echo(f"{block_id}: {'active' if state is BlockState.ACTIVE else 'inactive'}")


@cli.command("set-state")
@DOCUMENT
@click.argument("block_id")
@click.argument("state", type=click.Choice(sorted(STATES)))
def set_state(document: Path, block_id: str, state: str):
    """Set a block's state to active or inactive."""
    session = open_session(document)
    try:
        if not session.set_block_state(block_id, STATES[state]):
            raise click.ClickException(f"Could not update block {block_id}")
    except ChatBlocksError as e:
        raise click.ClickException(str(e))
    save_session(session)
    click.echo(f"{block_id}: {state}")


@cli.command()
@DOCUMENT
@click.option("--type", "block_type", type=click.Choice(sorted(BLOCK_TYPES)), default="user", show_default=True)
@click.option("--name", default=None, help="Display name for the block")
@click.option("--content", default="", help="Block content (reads stdin when '-')")
def new(document: Path, block_type: str, name: Optional[str], content: str):
    """Append a new block to the document."""
    if content == "-":
        content = click.get_text_stream("stdin").read().strip()
    session = open_session(document)
    try:
        block_id = session.insert_block(BLOCK_TYPES[block_type], content, name=name)
    except ValueError as e:
        raise click.ClickException(str(e))
    save_session(session)
    click.echo(block_id)


@cli.command()
@DOCUMENT
@click.argument("block_id")
@click.argument("name")
def rename(document: Path, block_id: str, name: str):
    """Set a block's display name (an empty name clears it)."""
    session = open_session(document)
    try:
        if not session.rename_block(block_id, name):
            raise click.ClickException(f"Could not rename block {block_id}")
    except ChatBlocksError as e:
        raise click.ClickException(str(e))
    save_session(session)


@cli.command()
@click.option("--templates", is_flag=True, help="Print example rules as config.yaml text")
@click.pass_context
def rules(ctx: click.Context, templates: bool):
    """List the text processing rules in effect."""
    if templates:
        data = {
            "text_processing": {
                "rules": [rule.model_dump(mode="json", exclude_defaults=True) for rule in template_rules()]
            }
        }
        click.echo(yaml.safe_dump(data, sort_keys=False, allow_unicode=True))
        return

    config = load_config(ctx.obj["config_path"], required=False)
    rule_set = config.rules if config else load_all_rules()

    table = Table(title="Text processing rules")
    table.add_column("ID", no_wrap=True)
    table.add_column("Type")
    table.add_column("Name")
    table.add_column("Description")
    for rule in rule_set:
        table.add_row(escape(rule.id), rule.processor_type, escape(rule.name), escape(rule.description))
    console.print(table)


@cli.command("apply-rule")
@click.argument("rule_id")
@click.argument("source", type=click.File("r"), default="-")
@click.pass_context
def apply_rule_command(ctx: click.Context, rule_id: str, source):
    """Run one rule over a text file (or stdin) and print the result."""
    config = load_config(ctx.obj["config_path"], required=False)
    rule_set = config.rules if config else load_all_rules()
    try:
        rule = get_rule_by_id(rule_set, rule_id)
    except ChatBlocksError as e:
        raise click.ClickException(str(e))

    result = apply_rule(source.read(), rule)
    if not result.success:
        click.echo("No match", err=True)
    if result.extracted_block is not None:
        click.echo(f"--- extracted ({result.extracted_block.type.name.lower()}) ---", err=True)
        click.echo(result.extracted_block.content, err=True)
        click.echo("--- text ---", err=True)
    click.echo(result.processed_text)


@cli.command()
@click.argument("response_file", type=click.File("r"), default="-")
@click.pass_context
def thinking(ctx: click.Context, response_file):
    """Split the thinking chain from a saved provider response (JSON or text)."""
    config = load_config(ctx.obj["config_path"], required=False)
    raw = response_file.read()
    try:
        response = json.loads(raw)
    except json.JSONDecodeError:
        response = raw

    if config:
        try:
            thinking_rules = config.thinking_rules
        except ValueError as e:
            raise click.ClickException(str(e))
    else:
        thinking_rules = get_rules_by_purpose(THINKING_CHAIN_PURPOSE)

    result = extract_thinking(response, thinking_rules)
    if result.thinking_content:
        console.print("[bold]Thinking[/bold]")
        click.echo(result.thinking_content)
        console.print("[bold]Answer[/bold]")
    click.echo(result.main_content)


@cli.command()
@DOCUMENT
@click.option("--model", "model_id", default=None, help="Model id or alias (default: llm.default_model)")
@click.pass_context
def send(ctx: click.Context, document: Path, model_id: Optional[str]):
    """Send the active blocks to a model and append its reply."""
    config = load_config(ctx.obj["config_path"])
    session = open_session(document, config)
    service = LLMService(config.llm)

    logger.info("send_command_started", document=str(document), model_id=model_id)
    with console.status("Waiting for model..."):
        try:
            result = asyncio.run(session.send_context(service, model_id))
        except ChatBlocksError as e:
            raise click.ClickException(str(e))
    save_session(session)

    usage = result.response.usage
    summary = f"Appended reply {result.assistant_block_id}"
    if result.note_block_id:
        summary += f" with thinking chain {result.note_block_id}"
    if usage:
        summary += f" ({usage.total_tokens} tokens)"
    click.echo(summary)


@cli.command()
@click.argument("provider_id")
@click.argument("model_id")
@click.option("--api-key", default=None, help="Key to probe with instead of the configured one")
@click.pass_context
def verify(ctx: click.Context, provider_id: str, model_id: str, api_key: Optional[str]):
    """Check that a provider/model pair answers."""
    config = load_config(ctx.obj["config_path"])
    service = LLMService(config.llm)
    try:
        report = asyncio.run(service.verify_provider(provider_id, model_id, api_key=api_key))
    except ChatBlocksError as e:
        raise click.ClickException(f"Verification failed: {e}")
    click.echo(report.to_markdown())


def main():
    """Main entry point for setuptools console script."""
    cli()


if __name__ == "__main__":
    main()
