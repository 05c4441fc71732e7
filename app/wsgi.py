from app.fbms import create_app

app = create_app()
