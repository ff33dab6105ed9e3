from contextlib import asynccontextmanager
from fastapi import FastAPI
from pricing_console.api.endpoints import end_all_sessions, router as api_router
from prometheus_fastapi_instrumentator import Instrumentator

@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # session state never outlives the process
    end_all_sessions()

app = FastAPI(
    title="Ride Pricing Console",
    description="Operator console for single and batch dynamic-price recommendations.",
    version="1.0.0",
    lifespan=lifespan
)

# Instrument the app with Prometheus metrics
Instrumentator().instrument(app).expose(app)

# Include the API router
app.include_router(api_router, prefix="/api")

@app.get("/", tags=["Root"])
def read_root():
    return {"message": "Welcome to the Ride Pricing Console"}
