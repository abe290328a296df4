"""Connectivity diagnostics for the learning-assistant backend."""

from __future__ import annotations

from .connectivity import ConnectivityReport, ProbeResult, is_port_in_use, probe, verify_connectivity

__all__ = [
    "ConnectivityReport",
    "ProbeResult",
    "is_port_in_use",
    "probe",
    "verify_connectivity",
]
