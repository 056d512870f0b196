import sys
import uvicorn
from stock_ledger.core.config import settings


def run_http(port: int = 8000):
    """Run the HTTP server"""
    print(f"🚀 Starting Stock Ledger API on port {port}...")
    uvicorn.run(
        "stock_ledger.main:app",  # Use string import
        host="0.0.0.0",
        port=port,
        reload=settings.DEBUG,
        log_config=None  # logging is configured in the app lifespan
    )


if __name__ == "__main__":
    port = int(sys.argv[1]) if len(sys.argv) > 1 else 8000
    run_http(port)
