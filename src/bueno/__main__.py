"""Allow ``python -m bueno``."""

import sys

from bueno.cli import main

sys.exit(main())
