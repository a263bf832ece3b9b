"""WSGI entry point for the application."""

from navdash import create_app

# Create the Flask application
application = create_app()

if __name__ == "__main__":
    application.run(host='0.0.0.0', port=application.config['PORT'], debug=application.config.get('DEBUG', False))
