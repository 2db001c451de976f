"""Reconciliation between source repositories and deployed site directories.

This package provides:
- Deployment: removing deployment directories
- Engine: full and single-repository reconciliation under one lock
- Scheduler: the periodic full reconciliation loop
"""
