"""Entry point for ``python -m resignal``."""

import sys

from resignal.cli import main

sys.exit(main())
