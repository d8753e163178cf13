"""Symbol information consumed by scoring and assembly."""

from contextkit.symbols.models import (
    ActiveSymbolInfo,
    CallHierarchyCall,
    CallHierarchyItem,
    DocumentSymbol,
    Location,
    Position,
    Range,
    SymbolProvider,
)
from contextkit.symbols.python_symbols import PythonSymbolProvider

__all__ = [
    "ActiveSymbolInfo",
    "CallHierarchyCall",
    "CallHierarchyItem",
    "DocumentSymbol",
    "Location",
    "Position",
    "PythonSymbolProvider",
    "Range",
    "SymbolProvider",
]
