#!/usr/bin/env python3
"""
Taskguard -- password policy command line tool.

Checks candidate passwords against the same strength rules the API enforces
at registration, and generates passwords guaranteed to pass them.

Usage:
  python main.py check                 # prompts, input hidden
  python main.py check 'Tr0ub4dor&3'
  python main.py check --json 'Tr0ub4dor&3'
  python main.py generate
  python main.py generate --length 24 --count 5
"""

import argparse
import getpass
import json
import sys
from typing import Optional

from auth.password_policy import MAX_LENGTH, MIN_LENGTH, evaluate, generate_strong


def _check(password: Optional[str], as_json: bool) -> int:
    if password is None:
        password = getpass.getpass("Password: ")
    result = evaluate(password)

    if as_json:
        print(
            json.dumps(
                {
                    "valid": result.valid,
                    "score": result.score,
                    "strength": result.strength,
                    "violations": [v.value for v in result.violations],
                },
                indent=2,
            )
        )
    else:
        print(f"  Score:    {result.score}/100 ({result.strength})")
        if result.valid:
            print("  Verdict:  accepted")
        else:
            print("  Verdict:  rejected")
            for violation in result.violations:
                print(f"  [!] {violation.message}")
    return 0 if result.valid else 1


def _generate(length: int, count: int) -> int:
    if not MIN_LENGTH <= length <= MAX_LENGTH:
        print(f"  [!] --length must be between {MIN_LENGTH} and {MAX_LENGTH}.", file=sys.stderr)
        return 2
    for _ in range(count):
        print(generate_strong(length))
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="taskguard",
        description="Check and generate passwords against the Taskguard strength policy.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py check
  python main.py check --json 'Tr0ub4dor&3'
  python main.py generate --length 20 --count 3
        """,
    )
    sub = parser.add_subparsers(dest="command")

    check = sub.add_parser("check", help="Score a password and list any rule it breaks")
    check.add_argument(
        "password",
        nargs="?",
        default=None,
        help="Password to check. Omit to be prompted without echo (keeps it out of shell history).",
    )
    check.add_argument("--json", action="store_true", help="Output structured JSON")

    gen = sub.add_parser("generate", help="Generate passwords that pass the policy")
    gen.add_argument("--length", type=int, default=16, help="Password length (default: 16)")
    gen.add_argument("--count", type=int, default=1, help="How many passwords to print (default: 1)")

    args = parser.parse_args(argv)

    if args.command == "check":
        return _check(args.password, args.json)
    if args.command == "generate":
        return _generate(args.length, args.count)

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
