"""CLI entry point and argument parsing."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from heapmeter.internals.errors import MeterError
from heapmeter.internals.version import print_banner


def _parse_overrides(pairs: list[str]) -> dict[str, str]:
    overrides = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"expected KEY=VALUE, got '{pair}'")
        overrides[key.strip()] = value.strip()
    return overrides


def _environment(config, overrides: dict[str, str]):
    from heapmeter.layout.probe import probe_environment

    layout = dict(config.layout)
    layout.update(overrides)
    return probe_environment(layout)


def run_probe(args: argparse.Namespace) -> int:
    """Print the probed environment, layout specification and strategy."""
    from heapmeter.config import load_config
    from heapmeter.layout.spec import LayoutSpecification
    from heapmeter.meter import Meter

    config = load_config(args.config)
    env = _environment(config, _parse_overrides(args.set))
    meter = Meter(config, environment=env, native_sizer=sys.getsizeof)
    spec = LayoutSpecification.from_environment(env)

    print("Environment:")
    for name, value in vars(env).items():
        print(f"  {name:<28} {value}")
    print()
    print("Layout specification:")
    for name, value in vars(spec).items():
        print(f"  {name:<32} {value}")
    print()
    print(f"Layout policy: {meter.policy.name}")
    print(f"Strategy:      {meter.strategy.kind.value} (order: "
          f"{', '.join(k.value for k in config.strategy_order)})")
    return 0


def run_explain(args: argparse.Namespace) -> int:
    """Print the shallow size of declared classes under every layout policy."""
    from lark import UnexpectedInput

    from heapmeter.config import load_config
    from heapmeter.declarations import DeclarationError, build_declarations, materialize
    from heapmeter.internals.parser import improve_parse_error, parse_declarations
    from heapmeter.introspection.introspector import FieldIntrospector
    from heapmeter.layout.contended import ContendedPadding
    from heapmeter.layout.policies import EmptySlotsDisabledPolicy, PostReformPolicy, PreReformPolicy
    from heapmeter.layout.spec import LayoutSpecification

    if args.source == "-":
        src = sys.stdin.read()
    else:
        try:
            src = Path(args.source).read_text(encoding="utf-8")
        except OSError as e:
            print(f"error: cannot read {args.source}: {e}", file=sys.stderr)
            return 2

    try:
        tree = parse_declarations(src, dump_parse=args.dump_parse)
    except UnexpectedInput as e:
        print(improve_parse_error(e), file=sys.stderr)
        return 2

    try:
        classes = materialize(build_declarations(tree))
    except DeclarationError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    config = load_config(args.config)
    env = _environment(config, _parse_overrides(args.set))
    spec = LayoutSpecification.from_environment(env)
    padding = ContendedPadding.from_environment(env)
    introspector = FieldIntrospector.for_host()
    policies = [
        PreReformPolicy(spec, padding),
        EmptySlotsDisabledPolicy(spec, padding),
        PostReformPolicy(spec, padding),
    ]

    print(f"Layout: {spec.describe()}")
    print()
    width = max((len(name) for name in classes), default=5)
    header = "  ".join(f"{p.name:>34}" for p in policies)
    print(f"{'class':<{width}}  {header}")
    for name, cls in classes.items():
        blocks = introspector.class_blocks(cls)
        sizes = "  ".join(f"{p.instance_size(blocks):>34}" for p in policies)
        print(f"{name:<{width}}  {sizes}")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    ap = argparse.ArgumentParser(prog="heapmeter", description="Object memory meter")
    ap.add_argument("--version", action="store_true", help="Show version and exit")
    ap.add_argument("-v", "--verbose", action="store_true", help="Log debug messages")
    ap.add_argument("--config", metavar="PATH",
                    help="heapmeter.toml, pyproject.toml or a directory holding one (default: cwd)")
    ap.add_argument("--set", metavar="KEY=VALUE", action="append", default=[],
                    help="Override an environment fact (e.g. narrow_references=true)")
    sub = ap.add_subparsers(dest="command")

    sub.add_parser("probe", help="Show the probed environment and the selected strategy")

    explain = sub.add_parser("explain", help="Size declared classes under each layout policy")
    explain.add_argument("source", help="Declaration file, or - for stdin")
    explain.add_argument("--dump-parse", action="store_true", help="Print raw Lark tree")

    args = ap.parse_args(argv)

    print_banner()
    if args.version:
        return 0

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        ap.print_help()
        return 2

    runner = {"probe": run_probe, "explain": run_explain}[args.command]
    try:
        return runner(args)
    except (MeterError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
