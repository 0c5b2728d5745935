#
# src/mtest/runtime/__init__.py
#
"""
Subprocess supervision and the top-level run loop for mtest.
"""

# 🔼⚙️
