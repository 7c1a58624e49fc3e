from fastapi import FastAPI
from sqlalchemy import text
from routers.formulations import router as formulations_router  # Formulation records
from routers.ingredients import router as ingredients_router  # Ingredient catalogue
from routers.animals import router as animals_router  # Animals and production stages
from app.dependencies import SessionLocal
from middleware.middleware import LoggingMiddleware
from middleware.cors_config import setup_cors
from middleware.error_handler import ErrorHandlerMiddleware
from middleware.error_handlers import register_exception_handlers
from middleware.logging_config import get_logger

# Initialize logging
logger = get_logger("main")

app = FastAPI(
    title="Feed Formulation Records",
    description="""
# Feed Formulation Records API

Bookkeeping for livestock feed formulations: which ingredients a mix
contains, in what proportions, and what each ingredient contributes to cost.

## API Categories

### 🧮 Formulations
Create, list, edit, duplicate, activate and export formulations. Ingredient
percentages must sum to 100% (within 0.1). Every write is all-or-nothing.

### 🌾 Ingredients
Ingredient catalogue with unit costs used for cost allocation.

### 🐄 Animals
Animals and the production stages formulations target.

## Errors

Failures answer with `{"success": false, "error": <kind>, "message": ...}`,
plus `detail` and `validation_errors` where applicable. Kinds:
`InvalidIngredientMix`, `ValidationFailed`, `NotFound`, `InvalidState`,
`Conflict`, `StorageError`.
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS (must be before other middleware)
setup_cors(app)

# Add error handler middleware (catches all unexpected exceptions)
app.add_middleware(ErrorHandlerMiddleware)

# Add logging middleware
app.add_middleware(LoggingMiddleware)

# Structured responses for domain and request validation errors
register_exception_handlers(app)

app.include_router(formulations_router)
app.include_router(ingredients_router)
app.include_router(animals_router)

@app.get("/")
async def root():
    logger.info("Root endpoint accessed")
    return {
        "message": "Feed Formulation Records v1.0",
        "status": "running",
        "docs": "/docs",
        "version": "1.0.0",
    }

@app.get("/health")
async def health():
    """Liveness plus a database round trip"""
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        database = "ok"
    except Exception as e:
        logger.error(f"Health check database error: {str(e)}")
        database = "unavailable"
    finally:
        db.close()
    return {"status": "ok" if database == "ok" else "degraded", "database": database}

@app.on_event("startup")
async def startup_event():
    logger.info("Feed Formulation Records starting up...")

@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Feed Formulation Records shutting down...")

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
