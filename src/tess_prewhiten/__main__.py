"""Allow ``python -m tess_prewhiten``."""

from __future__ import annotations

import sys

from tess_prewhiten.cli.main_cli import main

if __name__ == "__main__":
    sys.exit(main())
