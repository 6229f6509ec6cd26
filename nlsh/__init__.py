"""
Natural language shell.

This package turns a plain-language request into a single shell command using
a remote language model (Google Gemini or z.ai), shows the command, and runs it
in the user's shell once the user confirms.
"""

__version__ = "0.1.0"
