"""
Unforgettable Coffee - storefront API
FastAPI backend with flat JSON file storage and server-rendered admin reports
"""

import logging
import platform
import sys
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

try:
    import resource
except ImportError:
    resource = None

import structlog
from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse
from fastapi.templating import Jinja2Templates
from jinja2 import Undefined
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import Settings, get_settings
from reports import (
    DASHBOARD_RECENT_DAYS,
    DASHBOARD_TOP_PRODUCTS,
    REPORT_RECENT_DAYS,
    REPORT_TOP_PRODUCTS,
    as_number,
    build_sales_report,
    line_subtotal,
)
from repositories import (
    ContactRepository,
    DuplicateSubscriberError,
    NewsletterRepository,
    OrderRepository,
    ProductRepository,
)
from schemas import ContactCreate, NewsletterSignup, OrderCreate
from storage import JsonFileStore, StorageError

VERSION = "1.0.0"
STARTED_AT = time.monotonic()
TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"


def configure_logging(settings: Settings):
    renderer = structlog.dev.ConsoleRenderer() if settings.is_development else structlog.processors.JSONRenderer()
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level.upper(), logging.INFO)
        ),
    )


configure_logging(get_settings())
logger = structlog.get_logger()


def money(value) -> str:
    if isinstance(value, Undefined):
        value = 0
    return f"{as_number(value):.2f}"


templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
templates.env.filters["money"] = money
templates.env.globals["line_subtotal"] = line_subtotal


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    settings = get_settings()
    store = JsonFileStore(settings.data_dir)
    store.initialize()
    app.state.store = store
    logger.info(
        "application_startup",
        version=VERSION,
        port=settings.port,
        environment=settings.environment,
        data_dir=str(settings.data_dir),
    )
    yield
    logger.info("application_shutdown")


app = FastAPI(
    title="Unforgettable Coffee API",
    description="Storefront API for the Unforgettable Coffee shop",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    logger.info(
        "request_handled",
        method=request.method,
        path=request.url.path,
        status=response.status_code,
        duration_ms=round((time.perf_counter() - started) * 1000, 1),
        ip=client_ip(request),
    )
    return response


# Dependencies

def client_ip(request: Request):
    return request.client.host if request.client else None


def get_store(request: Request):
    return request.app.state.store


def get_products(store=Depends(get_store)) -> ProductRepository:
    return ProductRepository(store)


def get_orders(store=Depends(get_store)) -> OrderRepository:
    return OrderRepository(store)


def get_contacts(store=Depends(get_store)) -> ContactRepository:
    return ContactRepository(store)


def get_newsletter(store=Depends(get_store), settings: Settings = Depends(get_settings)) -> NewsletterRepository:
    return NewsletterRepository(store, case_insensitive=settings.newsletter_case_insensitive)


def max_rss():
    """Peak resident set size, or None where the resource module is missing (Windows)."""
    if resource is None:
        return None
    return resource.getrusage(resource.RUSAGE_SELF).ru_maxrss


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def error_response(status_code: int, error: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error, **extra})


def find_index_html(settings: Settings):
    for candidate in (settings.static_dir / "index.html", Path("index.html")):
        if candidate.is_file():
            return candidate
    return None


# JSON API

@app.get("/api/health")
async def health_check(settings: Settings = Depends(get_settings)):
    """Health check endpoint for monitoring"""
    return {
        "status": "healthy",
        "message": "Unforgettable Coffee Server is running!",
        "timestamp": now_iso(),
        "environment": settings.environment,
        "uptime": round(time.monotonic() - STARTED_AT, 3),
        "memory": {"maxRss": max_rss()},
        "version": VERSION,
    }


@app.get("/api/products")
def list_products(request: Request, products: ProductRepository = Depends(get_products)):
    items = products.list()
    logger.info("products_listed", count=len(items), ip=client_ip(request))
    return JSONResponse(
        content={"success": True, "data": items, "count": len(items), "timestamp": now_iso()},
        headers={"Cache-Control": "public, max-age=300"},
    )


@app.get("/api/products/{product_id}")
def get_product(product_id: str, products: ProductRepository = Depends(get_products)):
    try:
        pid = int(product_id)
    except ValueError:
        pid = None
    product = products.get(pid) if pid is not None else None
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return {"success": True, "data": product}


@app.get("/api/orders")
def list_orders(orders: OrderRepository = Depends(get_orders)):
    items = orders.list()
    return {"success": True, "data": items, "count": len(items)}


@app.post("/api/orders", status_code=status.HTTP_201_CREATED)
def create_order(
    order: OrderCreate,
    orders: OrderRepository = Depends(get_orders),
    settings: Settings = Depends(get_settings),
):
    logger.info("order_received", email=order.email)
    try:
        saved = orders.create(order)
    except StorageError as e:
        logger.error("order_create_failed", error=str(e))
        detail = f"Failed to create order: {e}" if settings.is_development else "Failed to create order"
        return error_response(500, detail)
    return {
        "success": True,
        "message": "Order placed successfully!",
        "orderId": saved["orderId"],
        "data": saved,
    }


@app.post("/api/contact", status_code=status.HTTP_201_CREATED)
def submit_contact(payload: ContactCreate, request: Request, contacts: ContactRepository = Depends(get_contacts)):
    logger.info("contact_received", email=payload.email)
    try:
        saved = contacts.create(payload, ip=client_ip(request))
    except StorageError as e:
        logger.error("contact_save_failed", error=str(e))
        return error_response(500, "Failed to save contact message")
    return {
        "success": True,
        "message": "Contact form submitted successfully! We will get back to you soon.",
        "data": saved,
    }


@app.post("/api/newsletter", status_code=status.HTTP_201_CREATED)
def subscribe_newsletter(
    payload: NewsletterSignup,
    request: Request,
    newsletter: NewsletterRepository = Depends(get_newsletter),
):
    logger.info("newsletter_subscription", email=payload.email)
    try:
        newsletter.subscribe(payload.email, payload.name, ip=client_ip(request))
    except DuplicateSubscriberError:
        return error_response(409, "Email already subscribed to our newsletter")
    except StorageError as e:
        logger.error("newsletter_save_failed", error=str(e))
        return error_response(500, "Failed to subscribe to newsletter")
    return {
        "success": True,
        "message": "Successfully subscribed to our newsletter! Welcome to the Unforgettable Coffee family!",
    }


@app.get("/api/sales-report")
def sales_report(orders: OrderRepository = Depends(get_orders), settings: Settings = Depends(get_settings)):
    report = build_sales_report(orders.list(), tz=settings.report_timezone)
    return {"success": True, "report": report}


@app.api_route("/api/{path:path}", methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"])
async def api_not_found(path: str):
    return error_response(404, "API endpoint not found")


# HTML pages

@app.get("/test", response_class=HTMLResponse)
async def test_page(request: Request, settings: Settings = Depends(get_settings)):
    return templates.TemplateResponse(
        request,
        "test.html",
        {
            "port": settings.port,
            "environment": settings.environment,
            "python_version": sys.version.split()[0],
            "platform": platform.system().lower(),
        },
    )


@app.get("/", response_class=HTMLResponse)
async def index(request: Request, settings: Settings = Depends(get_settings)):
    logger.info("home_requested", ip=client_ip(request))
    index_file = find_index_html(settings)
    if index_file:
        return FileResponse(index_file)
    logger.warning("index_html_missing", static_dir=str(settings.static_dir))
    return templates.TemplateResponse(request, "home.html", {})


@app.get("/admin", response_class=HTMLResponse)
def admin_dashboard(
    request: Request,
    orders: OrderRepository = Depends(get_orders),
    products: ProductRepository = Depends(get_products),
    contacts: ContactRepository = Depends(get_contacts),
    newsletter: NewsletterRepository = Depends(get_newsletter),
    settings: Settings = Depends(get_settings),
):
    all_orders = orders.list()
    report = build_sales_report(
        all_orders,
        tz=settings.report_timezone,
        top_n=DASHBOARD_TOP_PRODUCTS,
        recent_days=DASHBOARD_RECENT_DAYS,
    )
    return templates.TemplateResponse(
        request,
        "admin.html",
        {
            "report": report,
            "recent_orders": orders.recent()[:5],
            "product_count": len(products.list()),
            "contact_count": len(contacts.list()),
            "subscriber_count": len(newsletter.list()),
        },
    )


@app.get("/admin/sales-report", response_class=HTMLResponse)
def admin_sales_report(
    request: Request,
    orders: OrderRepository = Depends(get_orders),
    settings: Settings = Depends(get_settings),
):
    report = build_sales_report(
        orders.list(),
        tz=settings.report_timezone,
        top_n=REPORT_TOP_PRODUCTS,
        recent_days=REPORT_RECENT_DAYS,
    )
    return templates.TemplateResponse(request, "sales_report.html", {"report": report})


@app.get("/admin/orders", response_class=HTMLResponse)
def admin_orders(request: Request, orders: OrderRepository = Depends(get_orders)):
    return templates.TemplateResponse(request, "orders.html", {"orders": orders.recent()})


@app.get("/{full_path:path}")
async def spa_fallback(full_path: str, request: Request, settings: Settings = Depends(get_settings)):
    static_root = settings.static_dir.resolve()
    requested = (static_root / full_path).resolve()
    if full_path and requested.is_file() and static_root in requested.parents:
        return FileResponse(requested)
    index_file = find_index_html(settings)
    if index_file:
        return FileResponse(index_file)
    return templates.TemplateResponse(request, "not_found.html", {}, status_code=404)


# Error handlers

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = "Invalid request body"
    if errors:
        message = str(errors[0].get("msg", message))
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
    logger.warning("request_rejected", path=request.url.path, error=message)
    return error_response(400, message)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return error_response(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error("unhandled_exception", error=str(exc), path=request.url.path)
    settings = get_settings()
    return error_response(
        500,
        "Internal server error",
        message=str(exc) if settings.is_development else "Something went wrong",
    )


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "app:app",
        host=settings.host,
        port=settings.port,
        workers=1,
        reload=False,
        log_level=settings.log_level,
    )
