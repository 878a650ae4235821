"""
Job generation pipeline.

The orchestrator drives one job at a time through every stage; the gate
bounds how many jobs run at once.
"""

from pipeline.gate import ConcurrencyGate, GateSlot
from pipeline.orchestrator import PipelineOrchestrator, create_orchestrator, failure_message

__all__ = ["ConcurrencyGate", "GateSlot", "PipelineOrchestrator", "create_orchestrator", "failure_message"]
