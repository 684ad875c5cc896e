"""
Common utilities for the performance runner.
"""

from .admission import AdmissionGate
from .phase_manager import PhaseManager, RunPhase
from .worker_pool import WorkerPool

__all__ = ['AdmissionGate', 'PhaseManager', 'RunPhase', 'WorkerPool']
