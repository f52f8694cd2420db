from api.routes import create_app

# Vercel serves this module-level app
app = create_app()
