# storage/routes.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from storage.schemas import UploadComplete, UploadConfirmation, UploadRequest, UploadTicket
from storage.services import UploadService
from auth.routes import check_admin_role
from auth.models import User
from database import get_db
from dependencies import get_storage_client

router = APIRouter(prefix="/upload", tags=["upload"])


@router.post("/request", response_model=UploadTicket)
def request_upload(
    body: UploadRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(check_admin_role),
    storage=Depends(get_storage_client),
):
    """Presigned PUT URL for a direct browser upload, valid for an hour."""
    return UploadService.request_upload(body, storage, db)


@router.post("/complete", response_model=UploadConfirmation)
def complete_upload(
    body: UploadComplete,
    db: Session = Depends(get_db),
    current_user: User = Depends(check_admin_role),
    storage=Depends(get_storage_client),
):
    """Verify the uploaded object exists and store its reference."""
    return UploadService.complete_upload(body, storage, db)
