# Keep this TINY so importing the package never drags in heavy deps.
from . import lib  # so: from modules.posting_sweep import lib
from .main import run  # so: from modules.posting_sweep import run

__all__ = ["lib", "run"]
