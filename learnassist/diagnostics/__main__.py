from __future__ import annotations

import sys

from learnassist.diagnostics.cli import main

sys.exit(main())
