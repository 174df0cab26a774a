from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_api.core.errors import database_http_error
from clinic_api.models.provider import Provider
from clinic_api.routes.dependencies import ensure_database_ready, get_db

router = APIRouter(tags=['providers'])


class ProviderResponse(BaseModel):
    id: int
    full_name: str
    title: str | None = None
    specialization: str | None = None

    class Config:
        from_attributes = True


@router.get('', response_model=list[ProviderResponse])
def list_providers(db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return db.query(Provider).filter(
            Provider.active.is_(True),
        ).order_by(Provider.full_name.asc()).all()
    except SQLAlchemyError as exc:
        raise database_http_error(exc, 'providers') from exc


@router.get('/{provider_id}', response_model=ProviderResponse)
def get_provider(provider_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        provider = db.query(Provider).filter(
            Provider.id == provider_id,
            Provider.active.is_(True),
        ).first()
    except SQLAlchemyError as exc:
        raise database_http_error(exc, 'providers') from exc

    if provider is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Provider not found.',
        )
    return provider
