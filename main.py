from fastapi import FastAPI, Depends, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session
from sqlalchemy import text
from fieldops.database import get_db
from fieldops.core.config import settings
from fieldops.core.exceptions import FieldOpsError
from fieldops.core.logging_config import bind_correlation_id, logger
from fieldops.routers import route_optimization

# Schema is managed by Alembic migrations

app = FastAPI(
    title="FieldOps Route Optimization API", 
    version="1.0.0",
    redirect_slashes=False  # Disable automatic redirects to prevent POST data loss
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def correlation_id_middleware(request: Request, call_next):
    correlation_id = bind_correlation_id(request.headers.get("X-Request-ID"))
    response = await call_next(request)
    response.headers["X-Request-ID"] = correlation_id
    return response


@app.exception_handler(FieldOpsError)
async def fieldops_error_handler(request: Request, exc: FieldOpsError):
    logger.info(f"{request.method} {request.url.path} failed: {exc.error}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message, "error": exc.error},
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()))
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "success": False,
            "message": f"{location}: {first.get('msg', 'invalid request')}",
            "error": "invalid_input",
            "details": jsonable_encoder(errors),
        },
    )


# Include routers
app.include_router(route_optimization.router, prefix="/api/routes", tags=["Route Optimization"])


@app.get("/health")
async def health_check(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
        return {
            "status": "healthy",
            "database": "connected"
        }
    except Exception as e:
        logger.error(f"Health check failed: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service unhealthy"
        )
