"""Reconciled client-side view of CI pipeline runs."""
