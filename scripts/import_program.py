#!/usr/bin/env python3
"""
import_program.py - Load a program document into programs.db.

The document (JSON or YAML) holds the program with nested modules and
content, plus an optional `questions` mapping of content id -> questions.

Usage:
  python scripts/import_program.py onboarding.yaml
  python scripts/import_program.py onboarding.json --output data/programs.db
"""

import argparse
import json
import logging
import sys
from pathlib import Path

import yaml
from pydantic import ValidationError

from trainplayer.schemas import Program, QuizQuestion
from trainplayer.storage import save_program
from trainplayer.utils import load_settings, setup_logging

logger = logging.getLogger(__name__)


def load_document(path: Path) -> dict:
    """Read a JSON or YAML program document."""
    with open(path, "r", encoding="utf-8") as f:
        if path.suffix.lower() == ".json":
            return json.load(f)
        return yaml.safe_load(f)


def parse_document(document: dict) -> tuple[Program, dict[str, list[QuizQuestion]]]:
    """Split a document into the program and its quiz questions."""
    document = dict(document)
    raw_questions = document.pop("questions", {}) or {}
    program = Program(**document)
    questions = {
        content_id: [QuizQuestion(**q) for q in items]
        for content_id, items in raw_questions.items()
    }
    return program, questions


def main():
    settings = load_settings()
    parser = argparse.ArgumentParser(description="Import a training program into the content database")
    parser.add_argument("document", type=Path, help="Program document (.json, .yaml or .yml)")
    parser.add_argument("--output", type=Path, default=settings.content_db_path,
                        help=f"Content database (default: {settings.content_db_path})")
    args = parser.parse_args()

    setup_logging(settings.log_level)

    if not args.document.exists():
        logger.error(f"Document not found: {args.document}")
        sys.exit(1)

    try:
        program, questions = parse_document(load_document(args.document))
    except ValidationError as e:
        logger.error(f"Invalid program document: {e}")
        sys.exit(1)

    content_ids = {c.id for m in program.modules for c in m.contents}
    unknown = sorted(set(questions) - content_ids)
    if unknown:
        logger.warning(f"Questions reference unknown content: {', '.join(unknown)}")

    save_program(args.output, program, questions)
    logger.info(f"Imported program '{program.title}' ({program.id}) into {args.output}")
    logger.info(f"  Modules: {len(program.modules)}")
    logger.info(f"  Content items: {len(content_ids)}")
    logger.info(f"  Questions: {sum(len(q) for q in questions.values())}")


if __name__ == "__main__":
    main()
