from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging
import os
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from rich.logging import RichHandler
import uvicorn

from .adapters import build_adapters
from .config import load_config
from .models import SwapRequest
from .resolver import Resolver

VERSION = "0.1.0"

REQUEST_ERRORS = {
    "UnknownAssetError",
    "InvalidAmountError",
    "InsufficientAllowanceError",
    "EncodingError",
}

origins = [
    "*",
]


def configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(name)-12s %(levelname)-8s %(message)s",
        handlers=[RichHandler(rich_tracebacks=True)],
    )


def create_app(resolver: Optional[Resolver] = None) -> FastAPI:
    """Build the HTTP app.

    Without an explicit ``resolver`` one is built from the environment when
    the app starts up.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging()
        log = logging.getLogger("resolver")
        instance = resolver
        if instance is None:
            config = load_config()
            instance = Resolver(config, build_adapters(config))
        app.state.resolver = instance
        await instance.start()
        try:
            yield
        finally:
            await instance.stop()
            log.info("Shutting down the application")

    app = FastAPI(title="Fusion+ Resolver", lifespan=lifespan)
    if resolver is not None:
        app.state.resolver = resolver

    @app.get("/health")
    async def health_check():
        r: Resolver = app.state.resolver
        return {
            "status": "healthy",
            "service": "fusion-resolver",
            "version": VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "resolver": {name: a.resolver_address for name, a in r.adapters.items()},
            "networks": sorted(r.adapters),
            "monitoring": r.monitor.running,
            "orders": len(r.registry),
        }

    @app.post("/swap")
    async def swap(request: SwapRequest):
        r: Resolver = app.state.resolver
        unsupported = [n for n in (request.from_network, request.to_network) if n not in r.adapters]
        if unsupported:
            raise HTTPException(status_code=400, detail=f"Unsupported network: {unsupported[0]}")
        if request.from_network == request.to_network:
            raise HTTPException(status_code=400, detail="Source and destination networks must be different")

        result = await r.process_swap_request(request)
        if result.success:
            return result.model_dump(by_alias=True)
        status_code = 422 if result.error_kind in REQUEST_ERRORS else 500
        return JSONResponse(status_code=status_code, content=result.model_dump(by_alias=True))

    @app.get("/order/{order_hash}")
    async def order_status(order_hash: str):
        view = app.state.resolver.get_order_status(order_hash)
        if view is None:
            raise HTTPException(status_code=404, detail="Order not found")
        return view.model_dump(by_alias=True)

    @app.get("/orders")
    async def orders():
        r: Resolver = app.state.resolver
        summary = r.get_all_orders()
        return {
            "orders": {k: v.model_dump(by_alias=True) for k, v in summary.items()},
            "count": len(summary),
            "resolver": {name: a.resolver_address for name, a in r.adapters.items()},
        }

    @app.get("/supported")
    async def supported():
        return app.state.resolver.supported().model_dump(by_alias=True)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    return app


app = create_app()


def run() -> None:
    uvicorn.run("fusion_resolver.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "3001")))


if __name__ == "__main__":
    run()
