"""
CleanOps Kernel - work-order reconciliation core

Shared infrastructure for the cleaning-service operations engine:
- Typed exceptions with machine-readable codes
- Structured JSON logging
- Injectable clock
- Decimal money helpers
- Key-ordered store contract with memory and SQL adapters
"""

__version__ = "0.1.0"
