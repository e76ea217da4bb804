"""Allow ``python -m site_mirror``."""

import sys

from site_mirror.cli import main

sys.exit(main())
