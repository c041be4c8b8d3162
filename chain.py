#!/usr/bin/env python
import argparse
import json
import sys

from loguru import logger

from chainlang import ChainConfig, ChainError, ChainRuntime, EchoCommandHandler, ParseError, ValidationError
from chainlang.printer import format_tree, to_dict, to_string
from chainlang.results import result_to_dict


def _config(args) -> ChainConfig:
    return ChainConfig.from_env(
        namespace=args.namespace,
        strict_lexing=args.strict,
        max_depth=getattr(args, "max_depth", None),
        timeout=getattr(args, "timeout", None),
        node_timeout=getattr(args, "node_timeout", None),
        max_concurrent=getattr(args, "max_concurrent", None),
        continue_on_error=getattr(args, "continue_on_error", None),
        step_delay=getattr(args, "step_delay", None),
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="chain - compile and run command chains")
    parser.add_argument("--log-level", default="WARNING", help="loguru level for stderr output")
    parser.add_argument("--namespace", default=None, help="only accept commands in this namespace")
    parser.add_argument("--strict", action="store_const", const=True, default=None, help="reject unrecognized input")
    subparsers = parser.add_subparsers(dest="command")

    parse_parser = subparsers.add_parser("parse", help="Parse a chain and print it")
    parse_parser.add_argument("expression")
    fmt = parse_parser.add_mutually_exclusive_group()
    fmt.add_argument("--tree", action="store_true", help="print an indented outline")
    fmt.add_argument("--json", action="store_true", help="print the tree as JSON")

    plan_parser = subparsers.add_parser("plan", help="Show the execution plan without running anything")
    plan_parser.add_argument("expression")

    run_parser = subparsers.add_parser("run", help="Run a chain against the echo handler")
    run_parser.add_argument("expression")
    run_parser.add_argument("--fail", action="append", default=[], metavar="CMD", help="make CMD raise (repeatable)")
    run_parser.add_argument("--continue-on-error", action="store_const", const=True, default=None)
    run_parser.add_argument("--step-delay", type=float, default=None, metavar="SECONDS")
    run_parser.add_argument("--timeout", type=float, default=None, metavar="SECONDS")
    run_parser.add_argument("--node-timeout", type=float, default=None, metavar="SECONDS")
    run_parser.add_argument("--max-concurrent", type=int, default=None)
    run_parser.add_argument("--max-depth", type=int, default=None)
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logger.remove()
    logger.add(sys.stderr, level=args.log_level.upper())

    if args.command is None:
        parser.print_help()
        return 0

    try:
        config = _config(args)
        if args.command == "run":
            runtime = ChainRuntime(EchoCommandHandler(fail=args.fail), config=config)
        else:
            runtime = ChainRuntime(config=config, dry_run=True)
        chain = runtime.load(args.expression)
    except (ParseError, ValidationError) as e:
        print(f"[Error] {e}", file=sys.stderr)
        return 2

    if args.command == "parse":
        if args.tree:
            print(format_tree(chain))
        elif args.json:
            print(json.dumps(to_dict(chain), indent=2))
        else:
            print(to_string(chain))
        return 0

    if args.command == "plan":
        print(runtime.preview(chain).model_dump_json(indent=2))
        return 0

    try:
        result = runtime.run(chain)
    except ChainError as e:
        print(f"[Error] {e}", file=sys.stderr)
        partial = getattr(e, "result", None)
        if partial is not None:
            print(json.dumps(result_to_dict(partial), indent=2))
        return 1
    print(json.dumps(result_to_dict(result), indent=2))
    return 0 if getattr(result, "success", True) else 1


if __name__ == "__main__":
    sys.exit(main())
