import threading
import time
import webbrowser

import uvicorn

from app.core.settings import settings
from app.main import app

if __name__ == "__main__":
    url = f"http://{settings.HOST}:{settings.PORT}"

    def open_browser():
        time.sleep(1.5)
        webbrowser.open(url)

    if settings.OPEN_BROWSER:
        threading.Thread(target=open_browser, daemon=True).start()
    print(f"Google Drive download server running on {url}")
    uvicorn.run(app, host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL.lower())
