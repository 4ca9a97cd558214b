"""
storeflow command line interface.
"""

from storeflow.cli.app import cli, load_workflow, main

__all__ = ["cli", "load_workflow", "main"]
