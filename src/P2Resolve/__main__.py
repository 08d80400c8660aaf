"""Module entry point so ``python -m P2Resolve`` runs the CLI."""

from .cli import main

if __name__ == "__main__":
    main()
