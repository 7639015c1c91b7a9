"""Daily challenge phases, halftime snapshot and substitutions."""
