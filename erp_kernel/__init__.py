"""
ERP Kernel

Domain values and document aggregates for the trading document core:
- Currency-aware Money with minor-unit arithmetic
- Frozen document, payment, receipt and alert dataclasses
- Typed exception hierarchy with machine-readable codes
- Structured JSON logging
"""

__version__ = "0.1.0"
