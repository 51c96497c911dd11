from finsheets.cli import app

app()
