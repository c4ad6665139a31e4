"""
Workload Schedule Operator

Scales a deployment to replicasWhenActive inside a daily hour window and to
zero outside it, and labels new pods in the target namespace with the
current window state.
"""

__version__ = "0.1.0"
