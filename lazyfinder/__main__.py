"""Module entrypoint for ``python -m lazyfinder``.

All argument parsing and scan setup happen in ``lazyfinder.cli``.
"""

from .cli import main


if __name__ == "__main__":
    main()
