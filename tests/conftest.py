from __future__ import annotations

import sys
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]

# Ensure `grader` and `tests._helpers` import when pytest runs from any directory.
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
