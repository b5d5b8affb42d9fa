"""Allow running azguard with ``python -m azguard``."""

import sys

from azguard.cli import main

sys.exit(main())
