"""
Daily challenge scoring service.

Daily entity rankings and scores, plus the head-to-head daily challenge
(halftime snapshot, substitutions, Power Hour).
"""

__version__ = "1.0.0"
