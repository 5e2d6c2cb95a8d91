from typing import Literal
from fastapi import APIRouter, Query, Request
from starlette import status
from utils.deps import db_dependency, admin_dependency
from schemas.admin_schemas import AccessRequestOut, RejectAccessRequest, AdminAccessRequestCreate
from schemas.auth_schemas import UserSummary
from services.admin_service import AdminService
from middleware.rate_limiter import limiter

router = APIRouter(
    prefix="/admin",
    tags=["admin"]
)


@router.get("/access-requests", response_model=list[AccessRequestOut])
@limiter.limit("60/minute")
async def list_access_requests(request: Request, admin: admin_dependency, db: db_dependency,
                               status_filter: Literal["pending", "approved", "rejected"] | None = Query(default=None, alias="status")):
    return AdminService.list_access_requests(db, status_filter)


@router.post("/access-requests", response_model=AccessRequestOut, status_code=status.HTTP_201_CREATED)
async def add_access_request(body: AdminAccessRequestCreate, admin: admin_dependency, db: db_dependency):
    return AdminService.add_access_request(body.email, admin, db, name=body.name, notes=body.notes,
                                           approved=body.approved)


@router.delete("/access-requests/{request_id}", status_code=status.HTTP_200_OK)
async def delete_access_request(request_id: int, admin: admin_dependency, db: db_dependency):
    AdminService.delete_access_request(request_id, admin, db)
    return {"success": True, "message": "Access request removed"}


@router.post("/access-requests/{request_id}/approve", response_model=AccessRequestOut)
async def approve_access_request(request_id: int, admin: admin_dependency, db: db_dependency):
    return AdminService.approve_access_request(request_id, admin, db)


@router.post("/access-requests/{request_id}/reject", response_model=AccessRequestOut)
async def reject_access_request(request_id: int, admin: admin_dependency, db: db_dependency,
                                body: RejectAccessRequest | None = None):
    return AdminService.reject_access_request(request_id, admin, db, notes=body.notes if body else None)


@router.get("/users", response_model=list[UserSummary])
@limiter.limit("60/minute")
async def list_users(request: Request, admin: admin_dependency, db: db_dependency,
                     approved: bool | None = None):
    return AdminService.list_users(db, approved)


@router.post("/users/{user_id}/approve", response_model=UserSummary, status_code=status.HTTP_200_OK)
async def approve_user(user_id: int, admin: admin_dependency, db: db_dependency):
    return AdminService.set_user_approval(user_id, True, admin, db)


@router.post("/users/{user_id}/revoke-approval", response_model=UserSummary, status_code=status.HTTP_200_OK)
async def revoke_user_approval(user_id: int, admin: admin_dependency, db: db_dependency):
    return AdminService.set_user_approval(user_id, False, admin, db)
