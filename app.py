"""Application entry point for the grooming front desk API."""

from groomingdesk.webapp import create_app

app = create_app()


if __name__ == "__main__":
    app.run(debug=True)
