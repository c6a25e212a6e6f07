"""Command-line entry point: chat with the assistant or evaluate its titles."""

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import openai

from . import Assistant, llm
from .config import Settings
from .errors import ConciergeError
from .observers import LoggingObserver
from .service import ChatService
from .store import File, InMemory, Store

logger = logging.getLogger(__name__)

PROVIDERS = {
    "openai": llm.OpenAI,
    "openrouter": llm.OpenRouter,
    "deepseek": llm.DeepSeek,
    "echo": llm.Echo,
}
EXIT_COMMANDS = ("exit", "quit")


def build_llm(provider: str, settings: Settings) -> llm.LLM:
    if provider == "openai":
        return llm.OpenAI(default_model=settings.reply_model)
    return PROVIDERS[provider]()


# --- chat ---
async def _chat(args: argparse.Namespace, completion: llm.LLM) -> int:
    store: Store = File(args.store_dir) if args.store_dir else InMemory()
    async with Assistant(llm=completion, observer=LoggingObserver()) as assistant:
        service = ChatService(assistant, store, timeout=args.timeout)

        if args.message:
            conversation = await service.start_conversation(args.message)
            print(f"# {conversation.title}\n")
            print(conversation.messages[-1].content)
            return 0

        conversation_id = None
        print("Type a message, or 'exit' to quit.")
        while True:
            try:
                text = await asyncio.to_thread(input, "> ")
            except (EOFError, KeyboardInterrupt):
                print()
                return 0
            text = text.strip()
            if not text:
                continue
            if text.lower() in EXIT_COMMANDS:
                return 0
            try:
                if conversation_id is None:
                    conversation = await service.start_conversation(text)
                    conversation_id = conversation.id
                    print(f"# {conversation.title}")
                    print(conversation.messages[-1].content)
                else:
                    print(await service.continue_conversation(conversation_id, text))
            except ConciergeError as exc:
                print(f"error: {exc}", file=sys.stderr)


# --- eval ---
async def _eval(args: argparse.Namespace, completion: llm.LLM) -> int:
    from . import evals

    if args.dataset:
        logger.info("Loading dataset from %s", args.dataset)
        cases = evals.load_dataset(args.dataset)
    else:
        cases = evals.default_dataset()
    if args.limit > 0:
        cases = cases[: args.limit]

    evaluators = evals.build_evaluators(
        completion, rule_only=args.rule_only, llm_only=args.llm_only
    )
    async with Assistant(llm=completion, observer=LoggingObserver()) as assistant:
        report = await evals.Runner(assistant, evaluators).run(cases)

    output = args.output or str(
        Path("eval_results")
        / f"title_generation_{datetime.now().strftime('%Y%m%d_%H%M%S')}.json"
    )
    evals.save_report(output, report)

    print()
    print(evals.format_summary(report))
    print()
    print(f"Full report saved to: {output}")
    return 1 if report.failed_tests > 0 else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="concierge",
        description="Conversational assistant with weather, holiday and flight tools.",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )
    parser.add_argument(
        "--provider",
        choices=sorted(PROVIDERS),
        default="openai",
        help="Completion provider (default: openai)",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    chat = commands.add_parser("chat", help="Chat with the assistant")
    chat.add_argument(
        "message", nargs="?", help="Send one message and exit (interactive if omitted)"
    )
    chat.add_argument("--store-dir", help="Persist conversations as JSON files here")
    chat.add_argument(
        "--timeout", type=float, default=None, help="Per-message timeout in seconds"
    )

    evaluate = commands.add_parser("eval", help="Evaluate generated titles")
    evaluate.add_argument("--dataset", help="Dataset JSON file (default: built-in)")
    evaluate.add_argument("--output", help="Report path (default: eval_results/...)")
    mode = evaluate.add_mutually_exclusive_group()
    mode.add_argument(
        "--rule-only", action="store_true", help="Skip the LLM judge"
    )
    mode.add_argument(
        "--llm-only", action="store_true", help="Skip the rule-based evaluator"
    )
    evaluate.add_argument(
        "--save-dataset", metavar="PATH", help="Write the default dataset and exit"
    )
    evaluate.add_argument(
        "--limit", type=int, default=0, help="Run only the first N cases"
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "eval" and args.save_dataset:
        from . import evals

        evals.save_dataset(args.save_dataset, evals.default_dataset())
        logger.info("Dataset saved to %s", args.save_dataset)
        return 0

    try:
        completion = build_llm(args.provider, Settings.from_env())
    except (openai.OpenAIError, KeyError) as exc:
        logger.error("Could not configure the %s provider: %s", args.provider, exc)
        return 2

    handler = _chat if args.command == "chat" else _eval
    try:
        return asyncio.run(handler(args, completion))
    except ConciergeError as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
