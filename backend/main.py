# Entrypoint for running the summarizer API with uvicorn.

import logging
import os

import uvicorn


def main() -> None:
    """Start the FastAPI server using uvicorn."""
    logging.basicConfig(
        level=os.getenv("SUMMARIZER_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    uvicorn.run(
        "summarizer_backend.app:create_app",
        factory=True,
        host=os.getenv("SUMMARIZER_HOST", "0.0.0.0"),
        port=int(os.getenv("SUMMARIZER_PORT", "8000")),
        reload=False,
    )


if __name__ == "__main__":
    main()
