from activesql.cli.app import app

app()
