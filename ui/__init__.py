"""Tabular views over billing reports."""
