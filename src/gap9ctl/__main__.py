"""Allow ``python -m gap9ctl``."""

import sys

from gap9ctl.cli import main

sys.exit(main())
