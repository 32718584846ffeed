"""Sitebot entry point: HTTP server or interactive CLI."""

from __future__ import annotations

import argparse
import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

from sitebot.chat.orchestrator import ChatOrchestrator
from sitebot.chat.session import SessionStore
from sitebot.config import Settings, settings
from sitebot.llm.client import OpenRouterClient
from sitebot.scraper import ContentFetcher
from sitebot.server import ChatServer, create_app
from sitebot.sitemap import UrlIndex
from sitebot.tools import create_registry

logger = logging.getLogger(__name__)


@dataclass
class Assistant:
    """The wired-up components shared by the server and the CLI."""

    index: UrlIndex
    fetcher: ContentFetcher
    orchestrator: ChatOrchestrator


def build_assistant(config: Settings, index: UrlIndex | None = None) -> Assistant:
    """Load the URL index (unless given) and wire every component from *config*."""
    if index is None:
        logger.info("Loading sitemaps from %s", config.sitemap_dir)
        index = UrlIndex.from_sitemaps(
            config.sitemap_dir, config.get_sitemap_files(), config.site_base_url
        )
    if not len(index):
        logger.warning("URL index is empty; searches will return no results")

    fetcher = ContentFetcher(
        timeout=config.fetch_timeout_seconds,
        max_chars=config.max_content_chars,
        max_cache_entries=config.fetch_cache_max_entries,
    )
    registry = create_registry(
        index,
        fetcher,
        site_name=config.site_name,
        max_fetch_urls=config.fetch_max_urls,
        max_concurrent=config.fetch_max_concurrent,
    )
    orchestrator = ChatOrchestrator(
        OpenRouterClient.from_settings(config),
        registry,
        sessions=SessionStore(
            window_size=config.conversation_window_size,
            idle_timeout=config.session_idle_timeout_seconds,
        ),
        site_name=config.site_name,
        system_prompt=config.system_prompt or None,
        max_iterations=config.max_tool_iterations,
    )
    return Assistant(index=index, fetcher=fetcher, orchestrator=orchestrator)


async def run_server(assistant: Assistant, config: Settings) -> None:
    """Serve the JSON API until cancelled."""
    app = create_app(assistant.orchestrator, assistant.index, static_dir=config.static_dir)
    server = ChatServer(app, host=config.host, port=config.port)
    await server.start()
    logger.info(
        'Test the chatbot with: curl -X POST http://localhost:%d/api/chat '
        '-H "Content-Type: application/json" -d \'{"message": "Tell me about WordPress hosting"}\'',
        config.port,
    )
    try:
        await asyncio.Event().wait()
    finally:
        await server.stop()


async def run_cli(assistant: Assistant) -> None:
    """Read questions from stdin.

    ``reset`` clears history, ``clear-cache`` drops fetched pages and
    ``exit``/``quit`` leave.
    """
    print("CLI mode - enter your questions (reset, clear-cache, exit):")
    while True:
        try:
            line = await asyncio.to_thread(input, "> ")
        except EOFError:
            break

        message = line.strip()
        command = message.lower()
        if command in ("exit", "quit"):
            break
        if command == "reset":
            assistant.orchestrator.reset_conversation()
            print("Conversation history cleared.")
            continue
        if command == "clear-cache":
            assistant.fetcher.clear_cache()
            print("Page cache cleared.")
            continue
        if message:
            answer = await assistant.orchestrator.chat(message)
            print(f"\n{answer}\n")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Website chat assistant")
    parser.add_argument("--cli", action="store_true", help="Chat on the terminal instead of serving HTTP")
    parser.add_argument("--port", type=int, default=None, help="Override PORT")
    parser.add_argument("--sitemap-dir", type=Path, default=None, help="Override SITEMAP_DIR")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Start the assistant in server or CLI mode."""
    args = parse_args(argv)

    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=getattr(logging, settings.log_level),
    )

    overrides: dict[str, object] = {}
    if args.port is not None:
        overrides["port"] = args.port
    if args.sitemap_dir is not None:
        overrides["sitemap_dir"] = args.sitemap_dir
    config = settings.model_copy(update=overrides) if overrides else settings

    if not config.openrouter_api_key:
        logger.warning("OPENROUTER_API_KEY is empty; every chat turn will fail")

    assistant = build_assistant(config)
    logger.info("Chatbot initialized with model %s (%d URLs)", config.model, len(assistant.index))

    try:
        if args.cli:
            asyncio.run(run_cli(assistant))
        else:
            asyncio.run(run_server(assistant, config))
    except KeyboardInterrupt:
        logger.info("Shutting down")


if __name__ == "__main__":
    main()
