from solclaimer.modules.reclaimer.cli import app

app()
