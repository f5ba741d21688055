"""
                Tableside Ordering

Backend for QR-driven table ordering: guests scan a per-table code to
reach the menu and place orders, staff move orders through their
lifecycle from a polling dashboard.

Author: Khalil_Bannouri
Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
__author__ = "Khalil_Bannouri"
