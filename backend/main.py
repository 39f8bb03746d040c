from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from mangum import Mangum
from config import ENVIRONMENT
from utils.errors import CommerceError
import logging

from routers.auth.auth import router as auth_router
from routers.admin.admin import router as admin_router
from routers.listings.listings import router as listings_router
from routers.products.products import router as products_router
from routers.orders.orders import router as orders_router
from routers.statistics.statistics import router as statistics_router

logger = logging.getLogger(__name__)

IS_PRODUCTION = ENVIRONMENT == "prod"

app = FastAPI(
    title="TierMarket API",
    description="Commerce engine for a tiered marketplace: importers, wholesalers, retailers and customers.",
    version="1.0.0",
    root_path="/Prod" if IS_PRODUCTION else "",
    docs_url="/apidocs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    servers=[
        {"url": "https://your-aws-api.execute-api.region.amazonaws.com/Prod", "description": "Production Server"},
        {"url": "http://localhost:8000", "description": "Local Development Server"},
    ],
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CommerceError)
async def commerce_error_handler(request: Request, exc: CommerceError):
    """Render engine failures with their stable error code"""
    if exc.http_status >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code.value} {exc.detail}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.code.value} {exc.detail}")
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


app.include_router(auth_router)
app.include_router(admin_router)
app.include_router(listings_router)
app.include_router(products_router)
app.include_router(orders_router)
app.include_router(statistics_router)


@app.get("/docs", include_in_schema=False)
async def api_documentation(request: Request):
    openapi_url = "/Prod/openapi.json" if IS_PRODUCTION else "/openapi.json"

    return HTMLResponse(
        f"""
<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1, shrink-to-fit=no">
    <title>TierMarket API DOCS</title>

    <script src="https://unpkg.com/@stoplight/elements/web-components.min.js"></script>
    <link rel="stylesheet" href="https://unpkg.com/@stoplight/elements/styles.min.css">
  </head>
  <body>

    <elements-api
      apiDescriptionUrl="{openapi_url}"
      router="hash"
      theme="dark"
    />

  </body>
</html>"""
    )


@app.get("/", response_class=HTMLResponse)
def home():
    """Landing page for the TierMarket backend"""
    return """
    <html>
      <head>
        <title>TierMarket API</title>
        <style>
          body { font-family: Arial, sans-serif; margin: 40px; background-color: #f8f9fa; }
          h1 { color: #333; }
          ul { list-style-type: none; padding: 0; }
          li { margin: 10px 0; }
          a { color: #0066cc; text-decoration: none; }
          a:hover { text-decoration: underline; }
        </style>
      </head>
      <body>
        <h1>Welcome to TierMarket API</h1>
        <hr>
        <ul>
          <li><a href="/docs">Spotlight API Documentation</a></li>
          <li><a href="/redoc">Redoc API Documentation</a></li>
          <li><a href="/apidocs">Swagger API Documentation</a></li>
          <li><a href="/openapi.json">OpenAPI Specification</a></li>
        </ul>
      </body>
    </html>
    """


handler = Mangum(app, lifespan="off")
