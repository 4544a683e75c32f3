"""Package-level CLI entrypoint for letterbox.

Provides `letterbox.main.main()` for callers that expect a `main()` symbol
and for ``python -m letterbox.main``.
"""


def main():
    """Run the CLI by delegating to `letterbox.cli.run`."""
    from .cli import run

    return run()


if __name__ == "__main__":
    main()
