from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import click

from pageplus.config import PagePlusSettings, load_config
from pageplus.context.store import InMemoryContextStore
from pageplus.conversation import ConversationController
from pageplus.core.logging import setup_logging
from pageplus.core.metrics import metrics_generate_latest
from pageplus.core.telemetry import init_tracing, shutdown_tracing
from pageplus.models.context import ContextItem, ContextItemType
from pageplus.models.providers import AiModel
from pageplus.models.tools import AVAILABLE_TOOLS
from pageplus.page.content import PAGE_MARKDOWN_LIMIT, page_markdown
from pageplus.persistence.context_store import SQLiteContextStore
from pageplus.persistence.migrations import run_migrations
from pageplus.protocols.context import ContextStore
from pageplus.providers.cloud import CloudProxyProvider
from pageplus.providers.errors import ProviderError
from pageplus.providers.factory import build_provider
from pageplus.suggestions import generate_page_suggestions
from pageplus.tools.orchestrator import ToolOrchestrator
from pageplus.tools.registry import ToolDependencies, build_tool_registry
from pageplus.tools.selector import ToolSelector

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/pageplus.yaml"


def _load_settings(config_path: str) -> PagePlusSettings:
    if Path(config_path).exists():
        return load_config(config_path)
    logger.info("config file %s not found, using defaults", config_path)
    return PagePlusSettings()


def _cloud_model(settings: PagePlusSettings) -> AiModel:
    if settings.models.selected.is_on_device:
        raise click.ClickException(
            "the on-device model needs a browser runtime; select a cloud model for the CLI"
        )
    return settings.models.selected


def _context_items(
    text_files: tuple[Path, ...],
    page_file: Path | None,
    url: str | None,
    limit: int = PAGE_MARKDOWN_LIMIT,
) -> list[ContextItem]:
    items = [
        ContextItem.new(ContextItemType.text, path.read_text(encoding="utf-8"), url=str(path))
        for path in text_files
    ]
    if page_file is not None:
        html = page_file.read_text(encoding="utf-8")
        items.append(ContextItem.new(ContextItemType.page, page_markdown(html, url, limit), url=url))
    return items


async def _ask(
    settings: PagePlusSettings,
    query: str,
    items: list[ContextItem],
    conversation_id: str | None,
) -> str:
    provider = build_provider(_cloud_model(settings), settings)
    store: ContextStore
    if conversation_id is not None:
        await run_migrations(str(settings.db_path))
        store = SQLiteContextStore(str(settings.db_path))
    else:
        store = InMemoryContextStore()

    registry = build_tool_registry(ToolDependencies(provider=provider, config=settings.tools))
    orchestrator = ToolOrchestrator(ToolSelector(provider, selected_model=settings.models.selected), registry)
    controller = ConversationController(
        provider,
        orchestrator,
        store,
        config=settings.context,
        conversation_id=conversation_id,
    )
    try:
        await controller.start()
        for item in items:
            await controller.capture(item)
        reply = await controller.submit(query, on_chunk=lambda chunk: click.echo(chunk, nl=False))
        click.echo()
        if reply is None:
            return ""
        return reply.tool_used or ""
    finally:
        await controller.close()
        if isinstance(provider, CloudProxyProvider):
            await provider.aclose()


@click.group()
def cli() -> None:
    """PagePlus orchestration CLI."""
    setup_logging()


@cli.command("ask")
@click.argument("query")
@click.option("--config", "config_path", default=DEFAULT_CONFIG_PATH, show_default=True)
@click.option(
    "--context",
    "text_files",
    multiple=True,
    type=click.Path(path_type=Path, exists=True, dir_okay=False),
    help="Text file attached as a context item (repeatable).",
)
@click.option(
    "--page",
    "page_file",
    type=click.Path(path_type=Path, exists=True, dir_okay=False),
    help="Saved HTML page attached as a page context item.",
)
@click.option("--url", default=None, help="Origin URL of the --page document.")
@click.option("--conversation", "conversation_id", default=None, help="Persist context under this id.")
@click.option(
    "--metrics-out",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Write Prometheus metrics for the run to this file.",
)
def ask_command(
    query: str,
    config_path: str,
    text_files: tuple[Path, ...],
    page_file: Path | None,
    url: str | None,
    conversation_id: str | None,
    metrics_out: Path | None,
) -> None:
    """Run one orchestrated turn against the cloud relay."""
    settings = _load_settings(config_path)
    setup_logging(settings.observability.log_level, settings.observability.json_logs)
    init_tracing(settings.telemetry)
    items = _context_items(text_files, page_file, url, settings.context.page_markdown_limit)
    try:
        tool_used = asyncio.run(_ask(settings, query, items, conversation_id))
    except ProviderError as exc:
        raise click.ClickException(str(exc)) from exc
    finally:
        shutdown_tracing()
    if metrics_out is not None and settings.observability.metrics_enabled:
        metrics_out.write_bytes(metrics_generate_latest())
    click.echo(f"[tool: {tool_used}]", err=True)


@cli.command("quota")
@click.argument("files", nargs=-1, type=click.Path(path_type=Path, exists=True, dir_okay=False))
@click.option("--query", default="", help="Draft query included in the estimate.")
@click.option("--config", "config_path", default=DEFAULT_CONFIG_PATH, show_default=True)
def quota_command(files: tuple[Path, ...], query: str, config_path: str) -> None:
    """Estimate how much of the cloud input budget the given files use."""
    settings = _load_settings(config_path)
    provider = build_provider(_cloud_model(settings), settings)
    items = _context_items(files, None, None)

    async def _estimate() -> None:
        try:
            usage = await provider.calculate_quota_usage(items, query)
        finally:
            if isinstance(provider, CloudProxyProvider):
                await provider.aclose()
        click.echo(f"{usage.current:.0f} / {usage.quota:.0f} tokens ({usage.percentage:.1f}%)")

    asyncio.run(_estimate())


@cli.command("suggest")
@click.argument("page_file", type=click.Path(path_type=Path, exists=True, dir_okay=False))
@click.option("--url", default="", help="URL the page was saved from.")
@click.option("--config", "config_path", default=DEFAULT_CONFIG_PATH, show_default=True)
def suggest_command(page_file: Path, url: str, config_path: str) -> None:
    """Propose starter prompts for a saved page."""
    settings = _load_settings(config_path)
    provider = build_provider(
        settings.models.suggestions_model,
        settings,
        cloud_model=settings.models.suggestions_model.value,
    )
    content = page_markdown(page_file.read_text(encoding="utf-8"), url or None, settings.context.page_markdown_limit)

    async def _suggest() -> None:
        try:
            response = await generate_page_suggestions(provider, url, content, settings.language)
        finally:
            provider.destroy_session()
            if isinstance(provider, CloudProxyProvider):
                await provider.aclose()
        for suggestion in response.suggestions:
            click.echo(f"- {suggestion.title}: {suggestion.description}")
            click.echo(f"  {suggestion.prompt}")

    asyncio.run(_suggest())


@cli.command("tools")
def tools_command() -> None:
    """List the tool catalog."""
    for tool in AVAILABLE_TOOLS:
        click.echo(f"{tool.function:<26} {tool.name}: {tool.description}")


@cli.command("init-db")
@click.option("--config", "config_path", default=DEFAULT_CONFIG_PATH, show_default=True)
def init_db_command(config_path: str) -> None:
    """Create the context store database and apply migrations."""
    settings = _load_settings(config_path)
    applied = asyncio.run(run_migrations(str(settings.db_path)))
    click.echo(f"{settings.db_path}: {len(applied)} migration(s) applied")


__all__ = ["cli"]


if __name__ == "__main__":
    cli()
