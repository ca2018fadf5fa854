import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from hospital_api.core import config
from hospital_api.database import create_schema, dispose_database, init_database
from hospital_api.routes import admission_routes, appointment_routes, billing_routes, room_routes

app = FastAPI(title='Hospital API')

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
    logging.basicConfig(level=config.LOG_LEVEL)
    config.validate_runtime_config()
    try:
        init_database()
        create_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.on_event('shutdown')
def close_database() -> None:
    dispose_database()


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={'error': exc.detail},
        headers=getattr(exc, 'headers', None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = errors[0].get('msg', 'Invalid request') if errors else 'Invalid request'
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={'error': message.removeprefix('Value error, ')},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception('Unhandled error on %s %s', request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={'error': str(exc) or 'Internal server error'},
    )


@app.get('/')
def root():
    return {'status': 'Hospital API Running'}


app.include_router(appointment_routes.router, prefix='/appointments')
app.include_router(admission_routes.router, prefix='/receptionist')
app.include_router(billing_routes.router, prefix='/receptionist')
app.include_router(room_routes.router)
