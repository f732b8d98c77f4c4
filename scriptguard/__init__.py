"""ScriptGuard: script-stripping document proxy and streaming CORS relay."""

__version__ = "1.0.0"
