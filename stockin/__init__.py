"""
Stock-In Batch Commit Engine
"""
__version__ = "1.0.0"
