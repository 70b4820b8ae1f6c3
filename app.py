# Minimal orchestrator that exposes the FastAPI app and registers routes
from helpers.setup import app, PORT  # FastAPI instance

# Import route modules for side-effect registration
import routes.generate as _routes_generate
import routes.health as _routes_health

# Local dev
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)
