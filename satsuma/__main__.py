"""Entry point for the Satsuma CLI.

Allows running the generator with ``python -m satsuma``.
"""

from .cli import main

if __name__ == "__main__":  # pragma: no cover
    main()
