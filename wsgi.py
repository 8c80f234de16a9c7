#!/usr/bin/env python3
"""
WSGI entry point for the dominoes server.
Gunicorn serves ``app``; running this file directly starts the Socket.IO
development server.
"""

import os
from domino_server.main import create_app

# Create the Flask application
app = create_app(os.environ.get('FLASK_ENV', 'production'))

if __name__ == "__main__":
    # For development only - use Gunicorn in production
    app.socketio.run(app, host='0.0.0.0', port=int(os.environ.get('PORT', 5000)),
                     allow_unsafe_werkzeug=True)
