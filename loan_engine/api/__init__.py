"""
Loan Engine API Application Factory
"""

from fastapi import FastAPI
import uvicorn

from .. import __version__
from ..config import get_config
from ..logging_config import setup_logging
from .loans import router as loans_router
from .payments import router as payments_router


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""
    app = FastAPI(
        title="Loan Engine API",
        description="Loan amortization schedules, payment allocation and loan lifecycle",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.include_router(loans_router, prefix="/loans", tags=["Loans"])
    app.include_router(payments_router, tags=["Payments"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "loan_engine_api",
            "version": __version__
        }

    return app


def run_server(host: str = None, port: int = None, debug: bool = False):
    """Run the FastAPI server"""
    config = get_config()
    setup_logging(config.log_level, log_format=config.log_format, log_file=config.log_file)
    uvicorn.run(
        "loan_engine.api:create_app",
        factory=True,
        host=host or config.api_host,
        port=port or config.api_port,
        reload=debug,
        log_level="info"
    )
