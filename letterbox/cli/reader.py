from typing import Any

from letterbox import config


def cmd_reader(args: Any) -> None:
    """Run the JSON reader web server against the configured archive."""
    from .. import reader

    host = args.host if getattr(args, "host", None) else config.READER_HOST
    port = int(args.port) if getattr(args, "port", None) else config.READER_PORT
    reader.run(host=host, port=port, db_path=config.DB_PATH, static_dir=getattr(args, "static_dir", None))
