"""Allow ``python -m sitedrop``."""

import sys

from sitedrop.cli import main

sys.exit(main())
