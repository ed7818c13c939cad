"""
autorouter - intent-sensitive auto-routing for chat requests.
"""

__version__ = "0.1.0"
__logo__ = "🧭"
