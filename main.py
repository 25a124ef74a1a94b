#!/usr/bin/env python3
"""
Sieve Variables Engine - Main Entry Point
=========================================

Command-line interface for running filter scripts and expanding
templates.

Usage:
    python main.py --script rules.yaml --message mail.eml   # Run a script
    python main.py --expand 'Hello ${name}' --var name=Joe  # Expand a template
    python main.py --check rules.yaml                       # Validate a script
    python main.py --help                                   # Show help
"""

import sys
import argparse
from pathlib import Path
from typing import List, Optional

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from core.config import load_config, Config
from core.logging import setup_logging, get_logger
from core.exceptions import SieveVarsError
from rules.engine import FilterEngine, FilterScript, IfNode, SetNode, ActionNode, load_message
from variables.commands import SetCommandEvaluator
from variables.expander import expand, extract_references
from variables.store import VariableStore

logger = get_logger("main")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Sieve Variables Engine - variable binding and ${...} expansion for mail filters",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --script rules.yaml --message mail.eml
  python main.py --script rules.yaml --message mail.eml --account user@example.com
  python main.py --expand '${a.b} ${COMPANY}' --var a.b=Hi --var company=ACME
  python main.py --expand '${name}' --var name=joe --modifier upperfirst
  python main.py --check rules.yaml
        """
    )

    mode_group = parser.add_mutually_exclusive_group()
    mode_group.add_argument(
        "--script",
        type=str,
        metavar="FILE",
        help="Filter script (YAML) to run against --message"
    )
    mode_group.add_argument(
        "--expand",
        type=str,
        metavar="TEXT",
        help="Expand a template against --var bindings"
    )
    mode_group.add_argument(
        "--check",
        type=str,
        metavar="FILE",
        help="Load and validate a filter script"
    )

    parser.add_argument(
        "--message",
        type=str,
        metavar="FILE",
        help="Message file (RFC 5322) for --script"
    )
    parser.add_argument(
        "--account",
        type=str,
        help="Account the message is delivered to"
    )
    parser.add_argument(
        "--var",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Variable binding for --expand (repeatable)"
    )
    parser.add_argument(
        "--modifier",
        action="append",
        default=[],
        metavar="NAME",
        help="Modifier applied to each --var value (repeatable)"
    )
    parser.add_argument(
        "--config",
        type=str,
        metavar="PATH",
        help="Path to configuration file"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    return parser.parse_args(argv)


def run_script(config: Config, script_path: Optional[str], message_path: str, account: Optional[str]) -> None:
    """Run a script against a message and print the recorded actions."""
    engine = FilterEngine(config)
    script = engine.load_script(script_path)
    message = load_message(message_path)

    result = engine.evaluate(script, message, account=account)

    print(f"\nScript: {script.name}")
    print(f"Message: {message_path}")
    print("-" * 50)
    print(f"  Tags: {', '.join(result.tags) if result.tags else '(none)'}")
    print(f"  Destinations: {', '.join(result.destinations(config.filter.default_folder)) or '(discarded)'}")
    if result.logs:
        print("  Log:")
        for line in result.logs:
            print(f"    - {line}")
    if result.stopped:
        print("  Stopped: yes")


def run_expand(text: str, bindings: List[str], modifiers: List[str]) -> None:
    """Expand a template against NAME=VALUE bindings."""
    store = VariableStore()
    setter = SetCommandEvaluator(store)

    for binding in bindings:
        if "=" not in binding:
            raise SieveVarsError(f"Invalid binding (expected NAME=VALUE): {binding}")
        name, value = binding.split("=", 1)
        setter.evaluate(modifiers, name, value)

    print(expand(text, store))


def run_check(script_path: str) -> None:
    """Validate a script and list the variables it references."""
    script = FilterScript.from_file(script_path)

    assigned = set()
    referenced = []

    def walk(nodes):
        for node in nodes:
            if isinstance(node, SetNode):
                assigned.add(node.command.name.lower())
                referenced.extend(extract_references(node.command.value))
            elif isinstance(node, ActionNode):
                referenced.extend(extract_references(node.argument))
            elif isinstance(node, IfNode):
                for _, block in node.branches:
                    walk(block)
                walk(node.otherwise)

    walk(script.commands)

    print(f"Script '{script.name}' is valid ({len(script.commands)} top-level commands)")
    unassigned = sorted({
        name for name in referenced
        if name.lower() not in assigned and not name.isdigit()
    })
    if unassigned:
        print(f"  Referenced but never set: {', '.join(unassigned)}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    try:
        config = load_config(args.config)
        if args.debug:
            config.debug = True

        setup_logging(
            log_level="DEBUG" if config.debug else config.logging.level,
            json_format=config.logging.json_format,
            console_output=config.logging.console_output
        )

        if args.expand is not None:
            run_expand(args.expand, args.var, args.modifier)
        elif args.check:
            run_check(args.check)
        elif args.script or config.filter.script_path:
            if not args.message:
                print("\nError: --message is required to run a script")
                return 1
            run_script(config, args.script, args.message, args.account)
        else:
            print("No mode specified. Use --script, --expand, --check, or --help")
            return 1

        return 0

    except SieveVarsError as e:
        logger.warning(f"{type(e).__name__}: {e}")
        print(f"\nError: {e}")
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 0


if __name__ == "__main__":
    sys.exit(main())
