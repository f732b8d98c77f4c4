"""ScriptGuard models package.

  - errors.py — ProxyError taxonomy, JSON error rendering and the mapping from
                httpx / asyncio exceptions onto it
"""
