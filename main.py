from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from database import engine, Base
from routers import tracking, analytics, funnel
from logging_config import setup_logging
import models
import config

setup_logging()

# Create tables
Base.metadata.create_all(bind=engine)

app = FastAPI(title="Session Analytics API")

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(tracking.router, prefix="/api/tracking", tags=["Tracking"])
app.include_router(analytics.router, prefix="/api/analytics", tags=["Analytics"])
app.include_router(funnel.router, prefix="/api/funnel", tags=["Funnel"])

@app.get("/")
def root():
    return {"message": "Session Analytics API"}

@app.get("/health")
def health_check():
    return {"status": "healthy"}
