"""
Development launcher for the donations API.

    python run.py --reload
    python run.py --host 127.0.0.1 --port 5000

Gateway callbacks (surl/furl) are built from PUBLIC_BASE_URL when set,
otherwise from the request host, so run behind the public hostname (or set
PUBLIC_BASE_URL) when testing against the live gateway.
"""
import argparse

import uvicorn

from temple_donations.config import get_settings


def main():
    settings = get_settings()
    parser = argparse.ArgumentParser(description=settings.APP_NAME)
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--reload", action="store_true", help="Restart on code changes")
    args = parser.parse_args()

    uvicorn.run(
        "temple_donations.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=settings.LOG_LEVEL.lower(),
        proxy_headers=True,
        forwarded_allow_ips="*",
    )


if __name__ == "__main__":
    main()
