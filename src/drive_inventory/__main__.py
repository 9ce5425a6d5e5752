"""Allow ``python -m drive_inventory``."""

import sys

from drive_inventory.cli import main

sys.exit(main())
