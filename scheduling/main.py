import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from scheduling.core import config
from scheduling.core.errors import SchedulingError
from scheduling.database import Base, engine, ensure_appointment_schema, ensure_timeslot_schema
from scheduling.models import appointment, department, notification, profile, timeslot  # noqa: F401
from scheduling.routes import appointment_routes, notification_routes, reminder_routes, timeslot_routes

app = FastAPI(title='Municipal Scheduling API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.exception_handler(SchedulingError)
async def scheduling_error_handler(request: Request, exc: SchedulingError) -> JSONResponse:
    logger.info('%s %s rejected: %s', request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={'detail': exc.detail})


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    try:
        Base.metadata.create_all(bind=engine)
        ensure_timeslot_schema()
        ensure_appointment_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': 'Scheduling API Running'}


app.include_router(timeslot_routes.router, prefix='/timeslots')
app.include_router(appointment_routes.router, prefix='/appointments')
app.include_router(reminder_routes.router, prefix='/reminders')
app.include_router(notification_routes.router, prefix='/notifications')
