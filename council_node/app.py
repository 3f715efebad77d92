"""
council_node/app.py
-------------------
Thin entrypoint for running the Council FastAPI app via:

    uvicorn council_node.app:app

All real route wiring lives in council_node.council_api.
"""

from .council_api import create_app

app = create_app()


if __name__ == "__main__":
    # Convenience for: python -m council_node.app
    import uvicorn

    uvicorn.run(app, host="127.0.0.1", port=8000)
