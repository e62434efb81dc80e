#!/usr/bin/env python3
"""PluginSmith - Minecraft plugin generator.

Usage:
    python main.py create --prompt "a plugin that heals players on join"
    python main.py create --prompt "..." --compile        # generate and build the jar
    python main.py build generated-plugins/<build-id>     # run the build loop on a tree
    python main.py list
    python main.py serve --port 5000
"""

import argparse
import asyncio
import os
import sys

from core.orchestrator import Orchestrator
from core.state import BuildResult
from utils.logger import get_logger

logger = get_logger("cli")

SKIPPED_DIRS = {"target", ".git", ".idea"}


def read_tree(directory):
    """Load a project directory into a FileTree, skipping build output."""
    files = {}
    for root, dirs, names in os.walk(directory):
        dirs[:] = sorted(d for d in dirs if d not in SKIPPED_DIRS)
        for name in sorted(names):
            full_path = os.path.join(root, name)
            rel = os.path.relpath(full_path, directory).replace(os.sep, "/")
            try:
                with open(full_path, encoding="utf-8") as fp:
                    files[rel] = fp.read()
            except UnicodeDecodeError:
                logger.debug("Skipping binary file %s", rel)
    return files


def _print_build(build: BuildResult):
    print(f"Build:    {build.build_id}")
    print(f"Success:  {'yes' if build.success else 'NO'}")
    print(f"Compiles: {build.attempts_used}")
    if build.degraded:
        print("Warning:  built without shading, dependencies may be missing")
    if build.jar_path:
        print(f"Jar:      {build.jar_path}")


def cmd_create(args):
    orchestrator = Orchestrator()
    result = asyncio.run(orchestrator.create(args.prompt, compile=args.compile))

    if not args.compile:
        orchestrator.store.create(result.build_id, args.prompt)
        orchestrator.store.write_files(result.build_id, result.files)

    print(f"Plugin:   {result.plugin_name}")
    print(f"Output:   {orchestrator.store.build_dir(result.build_id)}")
    print(f"Time:     {result.processing_time:.2f}s{' (cached)' if result.cached else ''}")
    print(f"\nGenerated {len(result.files)} file(s):")
    for path in result.files:
        print(f"  {path}")

    if result.build is not None:
        print()
        _print_build(result.build)
        if args.verbose:
            print(result.build.build_output)
        return 0 if result.build.success else 1
    return 0


def cmd_build(args):
    if not os.path.isdir(args.directory):
        print(f"Not a directory: {args.directory}", file=sys.stderr)
        return 2
    files = read_tree(args.directory)
    if not files:
        print(f"No source files found in {args.directory}", file=sys.stderr)
        return 2

    orchestrator = Orchestrator(max_attempts=args.max_attempts)
    build = asyncio.run(orchestrator.build(files))
    _print_build(build)
    if args.verbose:
        print(build.build_output)
    return 0 if build.success else 1


def cmd_list(args):
    plugins = Orchestrator().store.list_plugins()
    if not plugins:
        print("No plugins generated yet.")
        return 0
    for plugin in plugins:
        print(f"  {plugin['buildId']:40s} {plugin['name']:24s} {plugin['status']:10s} {plugin['createdAt']}")
    return 0


def cmd_serve(args):
    from server import app

    logger.info("PluginSmith API listening on port %d", args.port)
    app.run(host=args.host, port=args.port, debug=False)
    return 0


def main():
    parser = argparse.ArgumentParser(
        prog="pluginsmith",
        description="Generate, repair and build Minecraft (Spigot) plugins",
    )
    subparsers = parser.add_subparsers(dest="command")

    create_parser = subparsers.add_parser("create", help="Generate a plugin from a description")
    create_parser.add_argument("--prompt", required=True, help="Natural language plugin description")
    create_parser.add_argument("--compile", action="store_true",
                               help="Build the generated project with Maven")
    create_parser.add_argument("--verbose", action="store_true", help="Print the build transcript")

    build_parser = subparsers.add_parser("build", help="Run the compile-and-fix loop on a project")
    build_parser.add_argument("directory", help="Maven project directory")
    build_parser.add_argument("--max-attempts", type=int, default=None,
                              help="Fix rounds before the unshaded fallback")
    build_parser.add_argument("--verbose", action="store_true", help="Print the build transcript")

    subparsers.add_parser("list", help="List generated plugins")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=int(os.environ.get("PORT", 5000)))

    args = parser.parse_args()
    commands = {
        "create": cmd_create,
        "build": cmd_build,
        "list": cmd_list,
        "serve": cmd_serve,
    }
    if args.command not in commands:
        parser.print_help()
        sys.exit(1)
    sys.exit(commands[args.command](args))


if __name__ == "__main__":
    main()
