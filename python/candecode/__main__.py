"""Allow ``python -m candecode``."""

import sys

from .cli import main

sys.exit(main())
