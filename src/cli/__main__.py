"""Allow ``python -m src.cli`` execution."""

from src.cli.datasets import main

main()
