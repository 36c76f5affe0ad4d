from __future__ import annotations

import importlib.util

if importlib.util.find_spec("grader.cli") is not None:
    from grader.cli import main
else:
    raise ModuleNotFoundError(
        "Could not resolve project imports. Run from repo root so `grader` is importable."
    )


if __name__ == "__main__":
    main()
