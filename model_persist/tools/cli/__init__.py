"""
Command-line interface of `model-persist`.
"""
