# backend/histquiz/cli.py

import argparse
import asyncio
import logging
import sys
from typing import Optional, Sequence

from dotenv import load_dotenv

from histquiz.client import QuestionGenerator
from histquiz.core.config import load_settings
from histquiz.core.renderer import QuizView, format_error


def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    settings = load_settings()
    parser = argparse.ArgumentParser(prog="histquiz", description="World-history quiz generator")
    sub = parser.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", help="Generate a quiz for a theme via the HTTP endpoint")
    gen.add_argument("theme", help="Theme, era, region or keywords")
    gen.add_argument("--url", default=settings.api_url, help="Generation endpoint URL")
    gen.add_argument("--show-answers", action="store_true", help="Reveal answers and alternates")

    serve = sub.add_parser("serve", help="Run the FastAPI app with uvicorn")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true")
    return parser.parse_args(argv)


def _generate(args: argparse.Namespace) -> int:
    generator = QuestionGenerator(args.url)
    payload = asyncio.run(generator.submit(args.theme))
    if payload is None:
        print(format_error(generator.error or ""), file=sys.stderr)
        return 1
    print(QuizView(payload, show_answers=args.show_answers).render_text(), end="")
    return 0


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("histquiz.app:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    load_dotenv()
    args = _parse_args(argv)
    logging.basicConfig(level=load_settings().log_level)
    if args.command == "generate":
        return _generate(args)
    return _serve(args)


if __name__ == "__main__":
    sys.exit(main())
