#!/usr/bin/env python3
"""Command-line interface for generating recipes and a shopping list from meal concepts."""

import argparse
import sys
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import List, Optional

from athyra.config import ConfigLoader, configure_logging
from athyra.data_layer.exceptions import (
    ConceptNotFoundError,
    GenerationCancelledError,
    InvalidStateError,
    LockTimeoutError,
    PantryCommitConflictError,
)
from athyra.data_layer.models import ConceptStatus
from athyra.engine import Engine, build_engine
from athyra.output.formatters import format_generation_json_string, format_generation_markdown
from athyra.planning.generation_service import GenerationRequest
from athyra.providers.recipe_provider import ConceptRequest


EXIT_OK = 0
EXIT_BAD_INPUT = 1
EXIT_CONFLICT = 2


def parse_budget(value: str) -> Decimal:
    """argparse type for a non-negative money amount ("30", "$42.50")."""
    try:
        amount = Decimal(value.strip().lstrip("$"))
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"invalid budget: {value!r}") from None
    if amount < 0:
        raise argparse.ArgumentTypeError(f"budget cannot be negative: {value!r}")
    return amount


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="athyra-plan",
        description="Generate detailed recipes and one consolidated shopping list from meal concepts"
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to engine config YAML (default: $ATHYRA_CONFIG or config/engine.yaml)"
    )
    parser.add_argument(
        "--user",
        type=str,
        default="local-user",
        help="User id whose concepts, pantry and lists are used (default: local-user)"
    )
    parser.add_argument(
        "--concepts",
        nargs="*",
        default=[],
        metavar="ID",
        help="Concept ids to turn into recipes"
    )
    parser.add_argument(
        "--generate-concepts",
        type=int,
        default=0,
        metavar="N",
        help="Generate N new concepts from the recipe library and include them in the batch"
    )
    parser.add_argument(
        "--vibe",
        type=str,
        default=None,
        help="Vibe words used to rank generated concepts (e.g. 'cozy italian')"
    )
    parser.add_argument(
        "--approve",
        action="store_true",
        help="Approve pending concepts in the batch before generating"
    )
    parser.add_argument(
        "--budget",
        type=parse_budget,
        default=None,
        help="Budget cap for the shopping list (e.g. 30 or 42.50)"
    )
    parser.add_argument(
        "--no-pantry",
        action="store_true",
        help="Ignore the pantry: buy the full consolidated demand"
    )
    parser.add_argument(
        "--output",
        type=str,
        choices=["markdown", "json", "both"],
        default="markdown",
        help="Output format: markdown (default), json, or both"
    )
    parser.add_argument(
        "--output-file",
        type=str,
        help="Optional file path to save output (default: print to stdout)"
    )
    return parser


def approve_pending(engine: Engine, user_id: str, concept_ids: List[str]) -> None:
    for concept_id in concept_ids:
        concept = engine.concepts.get(user_id, concept_id)
        if concept is not None and concept.status == ConceptStatus.PENDING:
            engine.lifecycle.approve(user_id, concept_id)


def write_output(text: str, output_file: Optional[str], suffix: Optional[str]) -> None:
    if not output_file:
        print(text)
        return
    output_path = Path(output_file)
    if suffix:
        output_path = output_path.with_suffix(suffix)
    output_path.write_text(text)
    print(f"Output saved to {output_path}", file=sys.stderr)


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point. Returns the process exit code."""
    args = build_parser().parse_args(argv)

    try:
        config = ConfigLoader(args.config).load()
    except (ValueError, OSError) as e:
        print(f"Error: could not load config: {e}", file=sys.stderr)
        return EXIT_BAD_INPUT
    configure_logging(config.log_level)

    try:
        engine = build_engine(config)
    except (ValueError, KeyError, OSError) as e:
        print(f"Error: could not load engine data: {e}", file=sys.stderr)
        return EXIT_BAD_INPUT

    concept_ids = list(args.concepts)
    if args.generate_concepts > 0:
        concepts = engine.generator.generate(
            args.user, ConceptRequest(vibe=args.vibe, num_concepts=args.generate_concepts)
        )
        for concept in concepts:
            engine.concepts.save(concept)
            print(f"Generated concept {concept.id}: {concept.name}", file=sys.stderr)
        concept_ids.extend(c.id for c in concepts)

    if not concept_ids:
        print("Error: no concepts given (use --concepts or --generate-concepts)", file=sys.stderr)
        return EXIT_BAD_INPUT

    try:
        if args.approve:
            approve_pending(engine, args.user, concept_ids)

        print(f"Generating recipes for {len(concept_ids)} concepts...", file=sys.stderr)
        result = engine.service.generate(
            args.user,
            GenerationRequest(
                concept_ids=concept_ids,
                budget_cap=args.budget,
                reduce_by_pantry=not args.no_pantry,
            ),
        )
    except (PantryCommitConflictError, LockTimeoutError, GenerationCancelledError) as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Nothing was committed; retry the batch.", file=sys.stderr)
        return EXIT_CONFLICT
    except (ConceptNotFoundError, InvalidStateError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_BAD_INPUT

    both = args.output == "both"
    if args.output in ["markdown", "both"]:
        write_output(format_generation_markdown(result), args.output_file, ".md" if both else None)
    if args.output in ["json", "both"]:
        if both and not args.output_file:
            print("\n" + "=" * 80 + "\n")
        write_output(format_generation_json_string(result), args.output_file, ".json" if both else None)

    for error in result.concept_failures:
        print(f"   - {error}", file=sys.stderr)
    if result.shopping_list is not None and not result.budget_met:
        print(f"\nBudget not met: over by ${result.shortfall:.2f}", file=sys.stderr)

    if not result.recipes and not result.already_handled:
        return EXIT_BAD_INPUT
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
