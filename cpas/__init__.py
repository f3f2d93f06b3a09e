"""
Construction Pay Application System.

Calculation and validation engine for AIA-style G702/G703 payment
applications, with project-file, export and command-line surfaces.
"""

__version__ = "0.1.0"
