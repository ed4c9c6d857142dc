from __future__ import annotations

"""
ledgerlab.version - semantic version string.

`LEDGERLAB_VERSION` in the environment overrides the built-in value, which is
handy for packaging pipelines that stamp builds.
"""


import os

# Bump this on intentional releases.
BASE_VERSION = "0.1.0"

__version__ = os.environ.get("LEDGERLAB_VERSION") or BASE_VERSION

__all__ = ["BASE_VERSION", "__version__"]
