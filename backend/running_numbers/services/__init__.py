"""Services module.

This module provides the service layer architecture:
- exceptions: Custom service exceptions
- sequencing: Running-number allocation and stable renumbering of submission items
"""
