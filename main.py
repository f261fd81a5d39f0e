"""Run the saltstream CLI straight from a source checkout.

    python main.py encrypt -i notes.txt -o notes.txt.enc --armor
    SALTSTREAM_PASSWORD=... python main.py decrypt --armor < notes.txt.enc

Same as the installed ``saltstream`` console script, without needing
``pip install``.
"""

from __future__ import annotations

import sys
from pathlib import Path

SRC = Path(__file__).resolve().parent / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from saltstream.frontend.cli.app import main  # noqa: E402


if __name__ == "__main__":
    sys.exit(main())
