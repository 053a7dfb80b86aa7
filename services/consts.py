"""
Centralized constants for PID tagging and unfolding.
"""

# PID decision level at or above which a track counts as tagged
PID_TAG_LEVEL = 2

# Charged hadron PDG identifiers (sign = charge)
KAON_PDG_ID = 321
PION_PDG_ID = 211

# Below this |det| the K/pi matrix is treated as singular
MIN_DETERMINANT = 1.0e-8
