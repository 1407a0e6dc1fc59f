"""Script de ejecución de la CLI `comunidad-pro`.

- `python -m main` desde `src/` durante desarrollo.
- Mismo entrypoint que el script declarado en pyproject.
"""

from __future__ import annotations

import sys

# Las consolas de Windows (cp1252) no imprimen tildes ni "ñ" sin esto.
if sys.platform == "win32":
    sys.stdout.reconfigure(encoding="utf-8")
    sys.stderr.reconfigure(encoding="utf-8")

from cli.main import run  # noqa: E402


def main() -> None:
    run()


if __name__ == "__main__":
    main()
