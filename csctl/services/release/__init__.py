"""Cluster stack release creation: fingerprints, versions, naming, publishing."""
