from project_controls.main import app
import uvicorn

if __name__ == "__main__":
    uvicorn.run(
        "project_controls.main:app",
        host="0.0.0.0",
        port=8000,
        workers=1,
        limit_concurrency=50,
        timeout_keep_alive=30,
        log_level="info"
    )
