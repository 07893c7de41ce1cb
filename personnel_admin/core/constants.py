"""
Service name and audit action codes
"""

SERVICE_NAME = "personnel-admin-backend"

# Audit action codes written by the cascade deletion flow
AUDIT_WORKLOAD_TRANSFER = "WORKLOAD_TRANSFER"
AUDIT_WORKLOAD_DELETE = "WORKLOAD_DELETE"
AUDIT_EMPLOYEE_DELETED = "EMPLOYEE_DELETED"
AUDIT_CASCADE_ROLLBACK = "CASCADE_ROLLBACK"
