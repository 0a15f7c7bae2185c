from pagedesk.app.main import run

raise SystemExit(run())
