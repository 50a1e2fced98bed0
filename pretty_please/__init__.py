"""pretty-please: natural-language shell command orchestration."""

__version__ = "0.1.0"
