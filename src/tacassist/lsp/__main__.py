"""
Run the tacassist language server on stdio.

Usage:
    python -m tacassist.lsp

Reads the nearest tacassist.toml, like the ``tacassist lsp`` command.
"""

from tacassist.core.config import find_config, load_config

from .server import start_server

if __name__ == "__main__":
    start_server(load_config(find_config()))
