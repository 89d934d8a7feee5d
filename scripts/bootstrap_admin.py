"""
Create (or promote) a tenant administrator from the command line.

Registration through the API always creates plain users, so the first admin
of a tenant comes from here:

    PYTHONPATH=backend python scripts/bootstrap_admin.py \
        --tenant-slug acme --tenant-name "Acme Inc" --email admin@acme.com
"""

from __future__ import annotations

import argparse
import getpass
import os
import sys
from dataclasses import dataclass
from typing import Optional, Sequence

from sqlalchemy.orm import Session

from app.core.errors import AppError
from app.crud.tenants import create_tenant, get_tenant_by_slug
from app.crud.users import create_user, get_user_by_email, update_user_role
from app.models.enums import RoleEnum


@dataclass
class BootstrapResult:
    tenant_id: str
    user_id: int
    created_tenant: bool
    created_user: bool
    promoted: bool


def bootstrap_admin(
    db: Session,
    *,
    tenant_slug: str,
    email: str,
    password: Optional[str] = None,
    tenant_name: Optional[str] = None,
    plan: Optional[str] = None,
) -> BootstrapResult:
    created_tenant = False
    tenant = get_tenant_by_slug(db, tenant_slug)
    if tenant is None:
        tenant = create_tenant(db, tenant_name or tenant_slug, tenant_slug, plan)
        created_tenant = True

    user = get_user_by_email(db, tenant.id, email)
    if user is not None:
        promoted = user.role != RoleEnum.ADMIN
        if promoted:
            user = update_user_role(db, tenant.id, user.id, RoleEnum.ADMIN)
        return BootstrapResult(
            tenant_id=tenant.id,
            user_id=user.id,
            created_tenant=created_tenant,
            created_user=False,
            promoted=promoted,
        )

    if not password:
        raise ValueError("A password is required to create a new admin user")
    user = create_user(db, tenant.id, email, password, RoleEnum.ADMIN)
    return BootstrapResult(
        tenant_id=tenant.id,
        user_id=user.id,
        created_tenant=created_tenant,
        created_user=True,
        promoted=False,
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Create or promote a tenant admin.")
    parser.add_argument("--tenant-slug", required=True)
    parser.add_argument("--tenant-name", default=None)
    parser.add_argument("--plan", default=None, choices=["free", "starter", "professional", "enterprise"])
    parser.add_argument("--email", required=True)
    parser.add_argument(
        "--password",
        default=None,
        help="Defaults to $BOOTSTRAP_ADMIN_PASSWORD, then an interactive prompt.",
    )
    return parser


def _existing_user(db: Session, tenant_slug: str, email: str):
    tenant = get_tenant_by_slug(db, tenant_slug)
    if tenant is None:
        return None
    return get_user_by_email(db, tenant.id, email)


def main(argv: Sequence[str] | None = None, *, session_factory=None) -> int:
    args = _build_parser().parse_args(argv)
    if session_factory is None:
        from app.core.db import SessionLocal as session_factory

    with session_factory() as db:
        password = args.password or os.getenv("BOOTSTRAP_ADMIN_PASSWORD")
        if not password and _existing_user(db, args.tenant_slug, args.email) is None:
            password = getpass.getpass("Admin password: ")
        try:
            result = bootstrap_admin(
                db,
                tenant_slug=args.tenant_slug,
                email=args.email,
                password=password,
                tenant_name=args.tenant_name,
                plan=args.plan,
            )
        except (AppError, ValueError) as exc:
            print(f"Bootstrap failed: {exc}", file=sys.stderr)
            return 1

    tenant_status = "created" if result.created_tenant else "existing"
    print(f"Tenant {args.tenant_slug} {tenant_status} with id={result.tenant_id}")
    if result.created_user:
        print(f"Admin user created with id={result.user_id}")
    elif result.promoted:
        print(f"User id={result.user_id} promoted to admin")
    else:
        print(f"User id={result.user_id} is already an admin")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
