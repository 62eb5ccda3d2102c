import logging

from fastapi import FastAPI

from cleancar.api.v1.admin import router as admin_router
from cleancar.api.v1.appointments import router as appointments_router
from cleancar.api.v1.packs import router as packs_router
from cleancar.api.v1.points import router as points_router
from cleancar.api.webhooks import router as webhooks_router
from cleancar.core.config import settings

class ContextFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        extras = []
        for key in (
            "user_id", "appointment_id", "external_id", "slot", "points", "status", "reason", "error"
        ):
            value = getattr(record, key, None)
            if value not in (None, ""):
                extras.append(f"{key}={value}")
        base = super().format(record)
        if extras:
            return f"{base} | " + " ".join(extras)
        return base


handler = logging.StreamHandler()
handler.setFormatter(ContextFormatter("%(levelname)s:%(name)s:%(message)s"))

root = logging.getLogger()
root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
root.handlers.clear()
root.addHandler(handler)

app = FastAPI(title="CleanCar Booking", version="1.0.0")

app.include_router(appointments_router, prefix="/api/v1", tags=["appointments"])
app.include_router(packs_router, prefix="/api/v1", tags=["packs"])
app.include_router(points_router, prefix="/api/v1", tags=["points"])
app.include_router(admin_router, prefix="/api/v1", tags=["admin"])
app.include_router(webhooks_router, tags=["webhooks"])


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
