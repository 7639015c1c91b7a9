"""
Services module for the daily challenge business logic.

This module organizes services into:
- aggregation: record sourcing, per-entity aggregation, ranking and the daily orchestrator
- scoring: entity-type variants and the trend-based scoring engine
- challenge: phase state machine, halftime snapshot and substitution ledger
"""
