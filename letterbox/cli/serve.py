import logging
from functools import partial
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any

from letterbox import config

logger = logging.getLogger("letterbox.cli.serve")


class SiteRequestHandler(SimpleHTTPRequestHandler):
    """Serve the build directory as if it were mounted at ``base_path``.

    Generated pages link to ``<base_path>/letters/...``, so the prefix is
    stripped before the file lookup.
    """

    def __init__(self, *args, base_path: str = "", **kwargs):
        self.base_path = base_path.rstrip("/")
        super().__init__(*args, **kwargs)

    def translate_path(self, path):
        if self.base_path and (path == self.base_path or path.startswith(self.base_path + "/")):
            path = path[len(self.base_path):] or "/"
        return super().translate_path(path)

    def log_message(self, format, *args):
        logger.debug("%s - %s", self.address_string(), format % args)


def cmd_serve(args: Any) -> None:
    """Preview the built static site over HTTP.

    Args:
        args: argparse namespace with .host, .port, .directory
    """
    directory = Path(args.directory) if getattr(args, "directory", None) else Path("build")
    if not directory.exists():
        logger.error("Build directory does not exist: %s (run `letterbox build` first)", directory)
        return

    host = args.host or "127.0.0.1"
    port = int(args.port or 8000)
    handler = partial(SiteRequestHandler, directory=str(directory), base_path=config.SITE_BASE_PATH)

    with ThreadingHTTPServer((host, port), handler) as httpd:
        logger.info("Serving %s on http://%s:%d%s/", directory, host, port, config.SITE_BASE_PATH)
        try:
            httpd.serve_forever()
        except KeyboardInterrupt:
            logger.info("Shutting down server")
