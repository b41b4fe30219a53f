"""Application entry point.

Starts the Flask development server or is used by gunicorn in production.
Streaming responses hold a worker thread for the length of an answer, so
give gunicorn enough threads.

Usage:
    Development:  python run.py
    Production:   gunicorn --bind 0.0.0.0:5000 --workers 2 --threads 16 run:app
"""
from tutor_relay import create_app

app = create_app()

if __name__ == "__main__":
    app.run(host="0.0.0.0", port=5000, debug=app.config.get("FLASK_DEBUG", False), threaded=True)
