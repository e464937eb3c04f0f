from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from mfg_inventory.common.error_handlers import register_error_handlers
from mfg_inventory.core.config import settings
from mfg_inventory.api.v1 import auth, templates, tiers, products, batches

app = FastAPI(title="Manufacturing Inventory", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# Register API routers
app.include_router(auth.router, prefix="/api/auth", tags=["authentication"])
app.include_router(
    templates.router, prefix="/api/templates", tags=["templates"])
app.include_router(tiers.router, prefix="/api/tiers", tags=["tiers"])
app.include_router(
    products.router, prefix="/api/products", tags=["products"])
app.include_router(batches.router, prefix="/api/batches", tags=["batches"])


@app.get("/")
def read_root():
    return {"message": "Welcome to the Manufacturing Inventory APIs!"}
