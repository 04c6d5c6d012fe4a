from __future__ import annotations

import os

# Keep CLI output free of ANSI escapes so assertions can match plain text.
os.environ.setdefault("NO_COLOR", "1")
