"""
Client for the certificate dashboard's serverless gateway.
"""

__version__ = '0.1.0'
