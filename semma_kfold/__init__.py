"""Stepwise logistic regression workflow with k-fold generalizability assessment."""
__version__ = "0.1.0"
