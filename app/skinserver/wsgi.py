from app.skinserver import create_app

app = create_app()
