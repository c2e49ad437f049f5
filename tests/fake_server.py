"""Minimal stand-in for a v2 inference server."""
import asyncio
import time
from typing import Any, Dict, Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

SIMPLE_CONFIG = {
    "name": "simple",
    "platform": "onnxruntime_onnx",
    "max_batch_size": 1,
    "input": [
        {"name": "INPUT0", "data_type": "TYPE_FP32", "dims": [3], "optional": False}
    ],
    "output": [
        {"name": "OUTPUT0", "data_type": "TYPE_FP32", "dims": [3]}
    ],
}


def create_fake_server(
    config: Optional[Dict[str, Any]] = None,
    config_status: int = 200,
    infer_status: int = 200,
    infer_delay: float = 0.0,
) -> FastAPI:
    """
    Serve `config` for every model and answer inference calls.

    Received infer bodies are kept in app.state.received; the highest
    number of concurrently running infer calls in app.state.max_concurrent
    and the monotonic arrival time of each call in app.state.arrivals.
    """
    app = FastAPI()
    app.state.config = config if config is not None else SIMPLE_CONFIG
    app.state.infer_status = infer_status
    app.state.infer_delay = infer_delay
    app.state.received = []
    app.state.concurrent = 0
    app.state.max_concurrent = 0
    app.state.arrivals = []

    @app.get("/v2/models/{model}/config")
    async def model_config(model: str):
        if config_status != 200:
            return JSONResponse(status_code=config_status, content={"error": f"model {model} unavailable"})
        return app.state.config

    @app.post("/v2/models/{model}/infer")
    async def infer(model: str, request: Request):
        app.state.arrivals.append(time.monotonic())
        app.state.received.append(await request.json())
        app.state.concurrent += 1
        app.state.max_concurrent = max(app.state.max_concurrent, app.state.concurrent)
        try:
            if app.state.infer_delay:
                await asyncio.sleep(app.state.infer_delay)
        finally:
            app.state.concurrent -= 1

        if app.state.infer_status != 200:
            return JSONResponse(status_code=app.state.infer_status, content={"error": "inference failed"})
        return {"model_name": model, "outputs": []}

    return app


def asgi_client(app: FastAPI) -> httpx.AsyncClient:
    """Async client routing every request into `app`."""
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")
