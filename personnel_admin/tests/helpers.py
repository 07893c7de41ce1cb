"""
Shared helpers for tests
"""
from personnel_admin.core.security import create_access_token


def auth_headers(employee_id):
    """Bearer header for an employee id"""
    token = create_access_token({"sub": str(employee_id)})
    return {"Authorization": f"Bearer {token}"}


def count_rows(db, model, **filters):
    """Count rows of ``model`` matching equality filters"""
    query = db.query(model)
    for column, value in filters.items():
        query = query.filter(getattr(model, column) == value)
    return query.count()
