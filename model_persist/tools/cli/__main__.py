"""
Entry point of `model-persist` CLI when invoked as a module.
"""

from .main import run

run()
