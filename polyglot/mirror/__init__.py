"""
Mirror engine — Classify, hardlink, and reconcile library mirrors.

This package provides the path classifier, the tree reconciler, the
mirror lifecycle service, orphan cleanup, and the library listing.
"""
