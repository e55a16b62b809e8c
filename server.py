import os
from typing import List

import uvicorn
from fastapi import FastAPI
from google.adk.cli.fast_api import get_fast_api_app

from contract_forge.config import configure_logging
from contract_forge.routes import router


def _parse_origins(value: str | None) -> List[str]:
    if not value:
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


configure_logging()

# Directory that contains the ADK agent packages (contract_forge/__init__.py and agent.py)
AGENTS_DIR = os.environ.get("AGENTS_DIR", os.path.dirname(os.path.abspath(__file__)))

# Example: export ALLOWED_ORIGINS="http://localhost:3000,https://yourapp.com"
ALLOWED_ORIGINS = _parse_origins(os.environ.get("ALLOWED_ORIGINS"))

SERVE_WEB_INTERFACE = os.environ.get("ADK_SERVE_WEB", "true").lower() in ("1", "true", "yes")

app: FastAPI = get_fast_api_app(
    agents_dir=AGENTS_DIR,
    allow_origins=ALLOWED_ORIGINS,
    web=SERVE_WEB_INTERFACE,
)
app.include_router(router)


if __name__ == "__main__":
    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", "8080"))
    uvicorn.run("server:app", host=host, port=port, reload=os.environ.get("RELOAD", "0") == "1")
