"""
Sinhala Unicode converter package.

This module provides a FastAPI application that hosts the conversion
controller, and a Streamlit front-end that drives it.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
