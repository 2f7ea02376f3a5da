"""Recipe consolidation, pantry netting and budget-aware shopping lists."""

__version__ = "0.1.0"
