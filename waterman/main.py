# ABOUTME: NiceGUI web application entry point serving calendar feeds and the scrape trigger
# ABOUTME: Routes are thin adapters over the process-wide WatermanOrchestrator

import hmac
from typing import Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from nicegui import app, ui

from waterman.config import Config, sport_display_name
from waterman.orchestrator import WatermanOrchestrator

# Initialize orchestrator
orchestrator = WatermanOrchestrator.from_config()


@app.get('/api/calendar/{sport}/feed.ics')
def calendar_feed(sport: str, token: Optional[str] = None, spots: Optional[str] = None) -> Response:
    """Subscribable ICS feed; ?token= personalizes, ?spots=a,b pins the site set."""
    site_ids = [s for s in spots.split(",") if s] if spots else None
    body, status, headers = orchestrator.feed_response(sport, token=token, site_ids=site_ids)
    return Response(content=body, status_code=status, headers=headers)


def is_authorized(request: Request) -> bool:
    """Bearer check against SCRAPE_SECRET_TOKEN; open when no secret is configured."""
    if not Config.SCRAPE_SECRET_TOKEN:
        return True
    auth = request.headers.get("authorization", "")
    expected = f"Bearer {Config.SCRAPE_SECRET_TOKEN}"
    return hmac.compare_digest(auth, expected)


@app.post('/api/scrape')
def scrape(request: Request):
    """Run an ingestion + scoring pass over every site."""
    if not is_authorized(request):
        return JSONResponse({"error": "Unauthorized"}, status_code=401)

    try:
        results = orchestrator.run_ingestion()
    except Exception as e:
        print(f"[SCRAPE] ERROR: {type(e).__name__}: {e}", flush=True)
        return JSONResponse({"success": False, "error": str(e)}, status_code=500)

    return {
        "success": True,
        "results": [r.to_dict() for r in results],
        "successCount": sum(1 for r in results if r.success),
        "failureCount": sum(1 for r in results if not r.success),
    }


@ui.page('/')
def index():
    """Landing page listing the public feed URLs"""
    ui.add_head_html("""
    <style>
        body { font-family: Arial, sans-serif; }
        .title { font-size: clamp(24px, 6vw, 40px); font-weight: bold; margin-top: 2vh; }
        .feed { font-family: monospace; font-size: 14px; }
    </style>
    """)

    with ui.column().classes('w-full items-center'):
        ui.html('<div class="title">Waterman</div>')
        ui.label('Best upcoming sessions, straight into your calendar.')

        for sport in Config.SPORTS:
            url = f"{Config.APP_URL.rstrip('/')}/api/calendar/{sport}/feed.ics"
            with ui.row().classes('items-center'):
                ui.label(sport_display_name(sport)).classes('font-bold')
                ui.link(url, url).classes('feed')


if __name__ in {"__main__", "__mp_main__"}:
    import os
    port = int(os.environ.get('PORT', 8080))
    ui.run(
        title='Waterman',
        host='0.0.0.0',
        port=port,
        reload=False  # Disable reload in production
    )
