"""
Database entity models.

Modules:
- ai_service_calls: Ledger of outbound AI provider calls (usage and cost accounting)
"""

from . import ai_service_calls

__all__ = ["ai_service_calls"]
