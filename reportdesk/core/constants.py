"""
Service-wide constants
"""

SERVICE_NAME = "reportdesk-backend"

PDF_CONTENT_TYPE = "application/pdf"
PDF_MAGIC = b"%PDF-"
