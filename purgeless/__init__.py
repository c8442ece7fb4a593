"""
purgeless — GCode post processor for purge-less multi material printing.

Moves every tool change earlier in the G-code so the material already
planned for the old tool flushes the nozzle, instead of a purge block.
"""

__version__ = "1.1.0"
