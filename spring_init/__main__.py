"""Allow ``python -m spring_init``."""

import sys

from spring_init.pipeline import main

sys.exit(main())
