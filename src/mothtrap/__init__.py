"""mothtrap: team bug tracker with a role-checked lifecycle and convention-based project discovery."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("mothtrap")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

from mothtrap.access import Actor
from mothtrap.core import Bug, MothtrapDB, User

__all__ = ["Actor", "Bug", "MothtrapDB", "User", "__version__"]
