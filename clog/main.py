#!/usr/bin/env python3
"""clog: Claude Code session logger with search."""

import os
import sys
import logging
from argparse import ArgumentParser, RawDescriptionHelpFormatter

import duckdb

from clog.config import Config, config_from_env
from clog.embedding import EmbeddingError, new_from_env as new_embedder
from clog.formatter import format_results, format_summaries, format_tool_results
from clog.ingest import run_hook
from clog.store import Store
from clog.timefilter import parse_time_filter

logger = logging.getLogger("clog")

DEFAULT_LIMITS = {
    "embed": 10000,
    "search": 10,
    "text_search": 20,
    "commands": 20,
    "summaries": 20,
}

ENV_HELP = """\
environment:
  OLLAMA_EMBED_MODEL   local Ollama embedding model (checked first)
  OLLAMA_CHAT_MODEL    local Ollama chat model for session summaries
  OLLAMA_HOST          Ollama address (usually http://localhost:11434)
  VOYAGE_API_KEY       Voyage AI API key
  OPENAI_API_KEY       OpenAI API key
  CLOG_CONFIG          optional YAML config file
  CLOG_LOG_BASE        database root (default: ~/.claude/logs)
"""


def build_parser() -> ArgumentParser:
    """Build the CLI argument parser."""
    parser = ArgumentParser(
        prog="clog",
        description="Claude Code session logger with search.",
        epilog=ENV_HELP,
        formatter_class=RawDescriptionHelpFormatter,
    )
    modes = parser.add_mutually_exclusive_group(required=True)
    modes.add_argument(
        "-i", "--ingest", action="store_true",
        help="read a Claude Code hook event from stdin",
    )
    modes.add_argument(
        "-e", "--embed", action="store_true",
        help="embed messages that have no embedding yet",
    )
    modes.add_argument(
        "-s", "--search", metavar="QUERY",
        help="semantic search over embeddings",
    )
    modes.add_argument(
        "-t", "--text-search", metavar="PATTERN",
        help="case-insensitive substring search",
    )
    modes.add_argument(
        "-c", "--commands", metavar="PATTERN",
        help='search tool call events (use "*" for all)',
    )
    modes.add_argument(
        "-l", "--summaries", action="store_true",
        help="list session summaries",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="show tool responses (use with -c)",
    )
    parser.add_argument(
        "-n", type=int, default=0, metavar="NUM",
        help="max results/messages (default: varies per mode)",
    )
    parser.add_argument(
        "--since",
        help="only results at or after this time (30m, 2h, 1d, 1w, YYYY-MM-DD, ...)",
    )
    parser.add_argument(
        "--until",
        help="only results at or before this time",
    )
    return parser


def setup_logging(level: str):
    logging.basicConfig(
        level=level,
        format="%(asctime)s [clog] %(levelname)s %(message)s",
        stream=sys.stderr,
    )


def open_current_project_store(config: Config) -> Store:
    db_path = config.db_path(os.getcwd())
    if not os.path.exists(db_path):
        raise FileNotFoundError(
            f"no database found at {db_path} - run a Claude Code session in this project first"
        )
    return Store(db_path)


def run_embed(config: Config, limit: int):
    embedder = new_embedder(config)
    try:
        with open_current_project_store(config) as store:
            store.init_embedding_schema(embedder.dimension)
            messages = store.unembedded_messages(limit)
            if not messages:
                print("All messages already embedded.")
                return

            print(f"Embedding {len(messages)} messages...")
            batch_size = config.embedding_batch_size
            for start in range(0, len(messages), batch_size):
                batch = messages[start:start + batch_size]
                end = start + len(batch)
                try:
                    vectors = embedder.embed([m.content for m in batch])
                except EmbeddingError as e:
                    raise EmbeddingError(f"embed batch {start}-{end}: {e}") from e

                for message, vector in zip(batch, vectors):
                    try:
                        store.save_embedding(message.id, vector)
                    except duckdb.Error as e:
                        logger.warning("save embedding for message %d: %s", message.id, e)
                print(f"  {end} / {len(messages)}")
            print("Done.")
    finally:
        embedder.close()


def run_search(config: Config, query: str, limit: int, tf):
    embedder = new_embedder(config)
    try:
        with open_current_project_store(config) as store:
            store.init_embedding_schema(embedder.dimension)
            vectors = embedder.embed([query])
            results = store.search_similar(vectors[0], limit, tf)
    finally:
        embedder.close()

    if not results:
        print("No results. Run 'clog --embed' first to generate embeddings.")
        return
    print(format_results(results))


def run_text_search(config: Config, pattern: str, limit: int, tf):
    with open_current_project_store(config) as store:
        results = store.text_search(pattern, limit, tf)
    if not results:
        print("No results.")
        return
    print(format_results(results))


def run_tool_search(config: Config, pattern: str, limit: int, verbose: bool, tf):
    with open_current_project_store(config) as store:
        results = store.tool_search(pattern, limit, tf)
    if not results:
        print("No tool call events found.")
        return
    print(format_tool_results(results, verbose))


def run_summaries(config: Config, limit: int, tf):
    with open_current_project_store(config) as store:
        results = store.list_summaries(limit, tf)
    if not results:
        print("No session summaries.")
        return
    print(format_summaries(results))


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = config_from_env()
    except ValueError as e:
        setup_logging(Config.log_level)
        if args.ingest:
            logger.error("config: %s", e)
            return 0  # never block Claude
        print(f"clog: {e}", file=sys.stderr)
        return 1

    setup_logging(config.log_level)

    if args.ingest:
        try:
            run_hook(sys.stdin.buffer.read(), config)
        except Exception as e:
            logger.error("%s", e)
        return 0  # never block Claude

    try:
        tf = parse_time_filter(args.since, args.until)
        if args.embed:
            run_embed(config, args.n or DEFAULT_LIMITS["embed"])
        elif args.search is not None:
            run_search(config, args.search, args.n or DEFAULT_LIMITS["search"], tf)
        elif args.text_search is not None:
            run_text_search(config, args.text_search, args.n or DEFAULT_LIMITS["text_search"], tf)
        elif args.commands is not None:
            run_tool_search(config, args.commands, args.n or DEFAULT_LIMITS["commands"],
                            args.verbose, tf)
        else:
            run_summaries(config, args.n or DEFAULT_LIMITS["summaries"], tf)
    except (OSError, ValueError, EmbeddingError, duckdb.Error) as e:
        print(f"clog: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        sys.exit(0)
    except BrokenPipeError:
        sys.exit(0)
