"""FastAPI application module for Geyser.

This module contains the FastAPI application and the read-only endpoints
that serve article and user rankings from a trained model.
"""
