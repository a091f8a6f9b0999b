from fastapi import APIRouter, Request

health_api = APIRouter(prefix="/v1/health", tags=["Health"])

@health_api.get("")
def health(request: Request):
    return {"status": "ok", "channels": request.app.state.registry.channels()}
