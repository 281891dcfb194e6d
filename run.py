"""
Entry point for Flask.

Usage (from project root):

    flask --app run.py --debug run

or, for the maintenance commands:

    flask --app run.py seed-admin
    flask --app run.py export-data backup.json
    flask --app run.py import-data backup.json

"""

from logistics import create_app

# WSGI application object. `flask run` looks for this `app` variable to start the application.
app = create_app()

if __name__ == "__main__":
    # Direct `python run.py` usage is for development only.
    app.run(debug=True)
