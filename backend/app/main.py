# backend/app/main.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import os, logging

from app.api import metrics, sheets, shopify

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))

app = FastAPI(title="Subscription Metrics API", version="0.1.0")

# Read-only JSON API for the dashboard; no cookies, so no credentials
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",") if o.strip()],
    allow_credentials=False,
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["*"],
)

@app.get("/api/health")
def health():
    return {"status": "ok"}

for module in (metrics, shopify, sheets):
    app.include_router(module.router)
    logging.info("Mounted router: %s", module.__name__)
