import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from clinic_api.core import config
from clinic_api.database import Base, engine, ensure_availability_schema, ensure_appointment_schema
from clinic_api.models import appointment, availability, procedure, provider  # noqa: F401
from clinic_api.routes import (
    appointment_admin_routes,
    appointment_routes,
    availability_routes,
    provider_routes,
    schedule_routes,
)

app = FastAPI(title='Clinic Booking API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    try:
        Base.metadata.create_all(bind=engine)
        ensure_availability_schema()
        ensure_appointment_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': 'Clinic Booking API Running'}


app.include_router(availability_routes.router, prefix='/availability')
app.include_router(appointment_routes.router, prefix='/appointments')
app.include_router(provider_routes.router, prefix='/providers')
app.include_router(schedule_routes.router, prefix='/admin/availability')
app.include_router(appointment_admin_routes.router, prefix='/admin/appointments')
