"""Allow running as python -m varistore."""

import sys

from varistore.cli import main

sys.exit(main())
