"""
Tools built on top of the persistence engine: configuration and CLI.
"""
