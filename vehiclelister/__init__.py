"""
Vehicle Lister - listing extraction and marketplace form automation

包初始化文件。
"""

from __future__ import annotations

__version__ = "0.1.0"
