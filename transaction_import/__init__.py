"""
Transaction Import - Source Package

Turns pasted bank-statement text into reviewed, categorized pending
transactions that a person accepts or discards one at a time.

DESIGN PRINCIPLES:
1. Parser suggests → Human reviews → Store confirms
2. Malformed input is data, not an exception
3. Local state never "heals" itself after a failed write
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Transaction Import Team"
