"""Keep a local, re-runnable snapshot of your GitHub stars."""

__version__ = "0.1.0"
