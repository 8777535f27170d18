from app.gymadmin import create_app

app = create_app()
