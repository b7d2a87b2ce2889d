"""
Unitflow — workflow conversion and layout engine.

Translates between the legacy stage/block workflow definition, the
canonical workflow IR, and the positioned node graph consumed by the
visual editor.
"""

__version__ = "0.1.0"
