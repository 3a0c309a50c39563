from hevcwatch.main import app

app()
