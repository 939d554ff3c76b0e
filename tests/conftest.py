"""
Pytest configuration for rxglyph tests.

This file ensures that the rxglyph modules can be imported correctly
during test execution.
"""

import sys
import os

# Add the project root directory to Python path
# This ensures that rxglyph.lib and other modules can be imported
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if project_root not in sys.path:
    sys.path.insert(0, project_root)
