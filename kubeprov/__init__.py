"""Helm values and provisioning helpers for OpenStack and virtual Kubernetes clusters."""

__version__ = "0.1.0"