from pathlib import Path
from typing import Any

from letterbox import build as build_mod


def cmd_build(args: Any) -> None:
    """Render the static site into the output directory.

    Args:
        args: argparse namespace with optional .out_dir attribute.
    """
    out_dir = Path(args.out_dir) if getattr(args, "out_dir", None) else build_mod.BUILD_DIR
    summary = build_mod.build(out_dir)
    print(f"built {summary['letters']} letters and {summary['images']} images into {out_dir}")
