"""
Tool-change relocation pass for multi-material G-code.

Streams slicer G-code segment by segment (one segment per tool change),
moves each tool change back far enough that the old material is printed
out instead of purged, and splices in purge code where that is not
possible.
"""
