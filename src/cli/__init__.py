"""CLI tools for kbForge.

- ``python -m src.cli``: dataset commands (create, index, vectorize,
  reset, query); see :mod:`src.cli.datasets`.

All CLI modules use argparse and build their components through
``src.main.build_components`` so they run against the same store and
model registry as the HTTP app.
"""
