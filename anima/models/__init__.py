from .entry import Entry
from .symbol import Symbol
from .connection import SymbolConnection
from .constellation import Constellation

__all__ = [
    "Entry",
    "Symbol",
    "SymbolConnection",
    "Constellation",
]
