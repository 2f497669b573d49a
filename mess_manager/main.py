import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from mess_manager.config import settings
from mess_manager.core.exceptions import CostMismatchException, MessManagerException
from mess_manager.routes import (
    attendance_routes,
    bazar_routes,
    expense_routes,
    meal_routes,
    mess_routes,
    payment_routes,
    report_routes,
)

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    docs_url="/docs" if settings.DEBUG else None,  # Disable in production
    redoc_url="/redoc" if settings.DEBUG else None,
)

# CORS middleware
cors_origins = settings.cors_origins_list
if cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
        allow_methods=["*"],
        allow_headers=["*"],
    )


# Every business error carries its own HTTP status
@app.exception_handler(MessManagerException)
async def mess_manager_exception_handler(request: Request, exc: MessManagerException):
    content = {"detail": str(exc)}
    headers = None

    if exc.status_code == status.HTTP_401_UNAUTHORIZED:
        headers = {"WWW-Authenticate": "Bearer"}
    if isinstance(exc, CostMismatchException):
        content["computed"] = str(exc.computed)
        content["provided"] = str(exc.provided)

    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)
    else:
        logger.debug("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)

    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


# Health check endpoint
@app.get("/health")
async def health_check():
    return {"status": "healthy", "version": settings.APP_VERSION}


# Root endpoint
@app.get("/")
async def root():
    return {
        "message": "Mess Manager API",
        "version": settings.APP_VERSION,
        "docs": "/docs" if settings.DEBUG else "Documentation disabled in production",
    }


# Include routers
app.include_router(mess_routes.router, prefix="/api/messes", tags=["Messes"])
app.include_router(meal_routes.router, prefix="/api/messes/{mess_id}/meals", tags=["Meals"])
app.include_router(bazar_routes.router, prefix="/api/messes/{mess_id}/bazar", tags=["Bazar"])
app.include_router(expense_routes.router, prefix="/api/messes/{mess_id}/expenses", tags=["Expenses"])
app.include_router(payment_routes.router, prefix="/api/messes/{mess_id}/payments", tags=["Payments"])
app.include_router(
    attendance_routes.router, prefix="/api/messes/{mess_id}/attendance", tags=["Attendance"]
)
app.include_router(report_routes.router, prefix="/api/messes/{mess_id}/reports", tags=["Reports"])
