"""
Application package for the Key Protect relay.

This package encapsulates the FastAPI application and the client
helpers that talk to IBM Cloud IAM and Key Protect.  It is installed
as a package so that ``uvicorn kms_relay.main:app`` resolves correctly.
"""

__version__ = "0.1.0"
