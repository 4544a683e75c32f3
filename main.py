#!/usr/bin/env python3
"""Thin wrapper entrypoint for the letterbox CLI.

Delegates the full CLI implementation to `letterbox.cli.run()` so the
top-level module remains small and import-safe.
"""
from letterbox.cli import run


def main():
    run()


if __name__ == "__main__":
    main()
