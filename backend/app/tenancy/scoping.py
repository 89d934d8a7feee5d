"""
Tenant-scoped query helpers.

Every lookup of a tenant-owned row (users, refresh tokens, audit entries)
goes through ``scoped_query``, so no query against those tables can be built
without a tenant predicate.
"""

from sqlalchemy.orm import Session

from app.core.errors import NotFoundError


def scoped_query(db: Session, model, tenant_id, *criteria):
    """
    Query ``model`` restricted to ``tenant_id`` plus any extra criteria.

        scoped_query(db, User, tenant_id, User.email == email).first()
    """
    if tenant_id is None:
        raise ValueError("tenant_id is required for a tenant-scoped query.")
    column = getattr(model, "tenant_id", None)
    if column is None:
        name = getattr(model, "__name__", repr(model))
        raise ValueError(f"{name} has no tenant_id column and cannot be tenant-scoped.")
    return db.query(model).filter(column == tenant_id, *criteria)


def get_tenant_owned_or_404(db: Session, model, tenant_id, object_id, *, message: str | None = None):
    # A row owned by another tenant is reported exactly like a missing one.
    resource = scoped_query(db, model, tenant_id, model.id == object_id).first()
    if resource is None:
        raise NotFoundError(message or "Resource not found")
    return resource
